from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Score at or above which a lab is badged as a top match
TOP_MATCH_THRESHOLD = 4


class LabRecord(BaseModel):
    """One row of the hosted lab table, keyed by the upstream column names."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    department: str = Field(default="", validation_alias=AliasChoices("Department", "department"))
    professor_name: str = Field(default="", validation_alias=AliasChoices("Professor Name", "professor_name"))
    contact: str = Field(default="", validation_alias=AliasChoices("Contact", "contact"))
    lab_name: str = Field(default="", validation_alias=AliasChoices("Lab Name", "lab_name"))
    # Older table revisions name this column "Department/Major"
    major: str = Field(default="", validation_alias=AliasChoices("Major", "Department/Major", "major"))
    how_to_apply: str = Field(default="", validation_alias=AliasChoices("How to apply", "how_to_apply"))
    description: str = Field(default="", validation_alias=AliasChoices("Description", "description"))

    # Text columns are nullable upstream; a null renders as an empty field
    @field_validator(
        "department", "professor_name", "contact", "lab_name", "major", "how_to_apply", "description",
        mode="before",
    )
    @classmethod
    def null_text_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_row(self) -> Dict[str, Any]:
        """Return the record keyed by upstream column names (as sent to the model)."""
        return {
            "id": self.id,
            "Department": self.department,
            "Professor Name": self.professor_name,
            "Contact": self.contact,
            "Lab Name": self.lab_name,
            "Major": self.major,
            "How to apply": self.how_to_apply,
            "Description": self.description,
        }


class ResumeDetails(BaseModel):
    major: str
    keywords: str

    def keyword_list(self) -> List[str]:
        return [k.strip() for k in self.keywords.split(",") if k.strip()]


class LabScore(BaseModel):
    """One parsed block of the comparison reply."""
    id: int
    similarity_score: int
    match_reason: str


class LabAnalysis(LabRecord):
    similarity_score: Optional[int] = None
    match_reason: Optional[str] = None

    @property
    def is_top_match(self) -> bool:
        return self.similarity_score is not None and self.similarity_score >= TOP_MATCH_THRESHOLD
