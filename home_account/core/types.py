"""
Base model for values exchanged with the frontend and the LLM in camelCase.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Snake_case attributes, camelCase on the wire.

    Accepts either spelling on input; dump with ``by_alias=True`` to emit
    camelCase keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
