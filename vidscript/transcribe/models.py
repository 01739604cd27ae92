"""
vidscript.transcribe.models - Recognition result contracts.

The service embeds the finished transcript as a JSON string inside the
query response; these models validate it at the boundary.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vidscript.exceptions import ResultParseError


class Utterance(BaseModel):
    """One recognized sentence with millisecond timestamps."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(alias="transcript")
    start_time: int = Field(default=0, ge=0)
    end_time: int = Field(default=0, ge=0)


class ASRResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    utterances: list[Utterance] = Field(default_factory=list)

    def to_text(self) -> str:
        """One utterance per line, no trailing newline."""
        return "\n".join(u.text for u in self.utterances)


def parse_result(payload: str | None) -> ASRResult:
    """Parse the embedded result JSON of a completed task.

    Raises:
        ResultParseError: If the payload is empty or does not match the schema
    """
    if not payload:
        raise ResultParseError("Completed task returned an empty result")
    try:
        return ASRResult.model_validate_json(payload)
    except ValidationError as e:
        raise ResultParseError(f"Malformed recognition result: {e}") from e
