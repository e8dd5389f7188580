"""
Column types shared by the models.
"""

from sqlalchemy import Enum


def status_enum(enum_cls, name: str) -> Enum:
    """String column holding enum values, checked by the database."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
