from ingestion.results_ingestion.core.base_profile import Branch, InstitutionProfile, Regulation
from ingestion.results_ingestion.core.hall_tickets import REGULAR_ROLLS

# Common R22 autonomous branch tokens
AUTONOMOUS_BRANCHES = (
    Branch(code="1A", name="CSE", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="1B", name="CSE (AI&ML)", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="1C", name="CSE (DS)", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="2A", name="ECE", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="3A", name="EEE", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="4A", name="MECH", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="5A", name="CIVIL", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="6A", name="IT", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="7A", name="CSE (Cyber Security)", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
    Branch(code="8A", name="AIDS", entry_type="regular", roll_formats=(REGULAR_ROLLS,)),
)

R22_COHORT = Regulation(name="R22", year="23")


def build_autonomous_profile(college_code: str) -> InstitutionProfile:
    """Numeric-only R22 profile for any 2-char autonomous college code (e.g. 'A1', 'XZ')."""
    return InstitutionProfile(
        slug="autonomous",
        college_code=college_code,
        regulations=(R22_COHORT,),
        branches=AUTONOMOUS_BRANCHES,
    )
