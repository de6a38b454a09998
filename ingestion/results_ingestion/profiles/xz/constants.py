from ingestion.results_ingestion.core.base_profile import Branch, Regulation
from ingestion.results_ingestion.core.hall_tickets import A_FORMAT_ROLLS, B_FORMAT_ROLLS, REGULAR_ROLLS

XZ_COLLEGE_CODE = "XZ"

XZ_REGULATIONS = (
    Regulation(name="R22", year="23"),
    Regulation(name="R23", year="24"),
    Regulation(name="R25", year="25"),
)

XZ_BRANCHES = (
    # CSE: regular numeric rolls + A-format laterals
    Branch(code="1A", name="CSE (Regular)", entry_type="regular", roll_formats=(REGULAR_ROLLS, A_FORMAT_ROLLS)),
    # IT: every lateral scheme
    Branch(code="5A", name="IT (Lateral)", entry_type="lateral", roll_formats=(REGULAR_ROLLS, B_FORMAT_ROLLS, A_FORMAT_ROLLS)),
)
