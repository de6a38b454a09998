from ingestion.results_ingestion.core.base_profile import InstitutionProfile
from ingestion.results_ingestion.profiles.xz.constants import XZ_BRANCHES, XZ_COLLEGE_CODE, XZ_REGULATIONS


def build_xz_profile(college_code: str = XZ_COLLEGE_CODE) -> InstitutionProfile:
    return InstitutionProfile(
        slug="xz",
        college_code=college_code,
        regulations=XZ_REGULATIONS,
        branches=XZ_BRANCHES,
    )
