"""Shared schema base — camelCase on the wire, snake_case in Python.

The browser client speaks camelCase (``showGradient``, ``sprintId``);
the models and services use snake_case. Every schema inherits the
alias generator from WireModel, accepts either spelling on input, and
is dumped by alias on output.
"""

from typing import Any

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class ReadModel(WireModel):
    """Output schema built from ORM rows."""

    model_config = {"from_attributes": True}


def dump(schema: type[BaseModel], obj: Any) -> dict:
    """Serialize an ORM row (or dict) through ``schema`` to camelCase JSON."""
    return schema.model_validate(obj).model_dump(mode="json", by_alias=True)


def dump_many(schema: type[BaseModel], objs) -> list[dict]:
    return [dump(schema, o) for o in objs]
