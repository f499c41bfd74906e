from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base para requests: acepta camelCase (cliente) o snake_case"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
