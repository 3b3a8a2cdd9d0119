"""
Base Schema Classes for Pydantic Models

Stored documents are loaded leniently (unknown keys ignored, camelCase
keys accepted) so that datasets written by older clients or pulled from
the spreadsheet endpoint still validate. Output is always snake_case.
"""

from pydantic import BaseModel, ConfigDict, AliasGenerator
from pydantic.alias_generators import to_camel


class BaseDocumentSchema(BaseModel):
    """
    Base class for documents persisted in storage and exchanged with the
    sync endpoint.

    Usage:
        class LeaveApplication(BaseDocumentSchema):
            employee_id: str  # also accepts "employeeId"
    """
    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
        extra='ignore',
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas received by the API.
    """
    model_config = ConfigDict(
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
    )
