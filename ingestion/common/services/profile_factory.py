import re
from typing import Callable, Dict, List, Optional

from ingestion.results_ingestion.core.base_profile import InstitutionProfile
from ingestion.results_ingestion.core.exceptions import ConfigurationError

# --- INSTITUTION PROFILES ---
from ingestion.results_ingestion.profiles.xz.profile import build_xz_profile
from ingestion.results_ingestion.profiles.autonomous.profile import build_autonomous_profile

COLLEGE_CODE_REGEX = re.compile(r"^[A-Z0-9]{2}$")


class ProfileFactory:
    """
    Central Registry for all enumeration profiles.
    """
    _registry: Dict[str, Callable[..., InstitutionProfile]] = {
        "xz": build_xz_profile,
        "autonomous": build_autonomous_profile,
    }

    # Profiles that cannot be built without an explicit college code
    _requires_college = {"autonomous"}

    @classmethod
    def get_profile(cls, slug: str, college_code: Optional[str] = None) -> InstitutionProfile:
        builder = cls._registry.get(slug.lower())
        if not builder:
            raise ConfigurationError(f"Profile not found: {slug}")

        if college_code is not None:
            college_code = college_code.strip().upper()
            if not COLLEGE_CODE_REGEX.match(college_code):
                raise ConfigurationError(f"Invalid college code: {college_code!r}")
            return builder(college_code)

        if slug.lower() in cls._requires_college:
            raise ConfigurationError(f"Profile '{slug}' requires a college code")
        return builder()

    @classmethod
    def list_available_profiles(cls) -> List[str]:
        return list(cls._registry.keys())
