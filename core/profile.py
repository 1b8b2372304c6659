"""
Applicant profile consumed read-only by the form filler.

Profiles are plain nested records (personal info, skills, additional info)
addressed by dotted path, e.g. "additional_info.expectedSalary.amount".
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"\d+(?:\.\d+)?")

# Store records use camelCase top-level keys.
_TOP_LEVEL_ALIASES = {
    "personalInfo": "personal_info",
    "personal_Info": "personal_info",
    "additionalInfo": "additional_info",
    "workExperience": "work_experience",
}


@dataclass
class SkillEntry:
    skill: str
    experience: str = ""

    @property
    def years(self) -> Optional[str]:
        """Leading number of the experience string ("3 years" -> "3")."""
        match = _NUMBER.search(str(self.experience))
        return match.group(0) if match else None


@dataclass
class UserProfile:
    """Applicant data used to answer application questions."""
    personal_info: Dict[str, Any] = field(default_factory=dict)
    skills: List[SkillEntry] = field(default_factory=list)
    additional_info: Dict[str, Any] = field(default_factory=dict)
    work_experience: List[Dict[str, Any]] = field(default_factory=list)
    education: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UserProfile":
        data = {_TOP_LEVEL_ALIASES.get(k, k): v for k, v in (data or {}).items()}
        skills = []
        for entry in data.get("skills") or []:
            if isinstance(entry, SkillEntry):
                skills.append(entry)
            elif isinstance(entry, dict) and entry.get("skill"):
                skills.append(SkillEntry(str(entry["skill"]), str(entry.get("experience", ""))))
            else:
                logger.warning(f"Ignoring malformed skill entry: {entry!r}")
        return cls(
            personal_info=dict(data.get("personal_info") or {}),
            skills=skills,
            additional_info=dict(data.get("additional_info") or {}),
            work_experience=list(data.get("work_experience") or []),
            education=list(data.get("education") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "personal_info": self.personal_info,
            "skills": [{"skill": s.skill, "experience": s.experience} for s in self.skills],
            "additional_info": self.additional_info,
            "work_experience": self.work_experience,
            "education": self.education,
        }

    def resolve(self, path: str) -> Any:
        """Walk a dotted path; None when any segment is missing."""
        current: Any = self.to_dict()
        for part in path.split("."):
            if isinstance(current, dict):
                current = current.get(part)
            elif isinstance(current, list) and part.isdigit():
                index = int(part)
                current = current[index] if index < len(current) else None
            else:
                return None
            if current is None:
                return None
        return current

    def find_skill(self, label: str) -> Optional[SkillEntry]:
        """Longest skill name contained in the label, else the "Other" entry."""
        text = label.lower()
        best = None
        for entry in self.skills:
            name = entry.skill.lower()
            if name and name in text and (best is None or len(name) > len(best.skill)):
                best = entry
        if best:
            return best
        for entry in self.skills:
            if entry.skill.lower() == "other":
                return entry
        return None


def load_profile(path: Union[str, Path]) -> UserProfile:
    """Load a profile from a YAML (or JSON) file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    profile = UserProfile.from_dict(data)
    logger.info(f"Loaded profile with {len(profile.skills)} skills from {path}")
    return profile
