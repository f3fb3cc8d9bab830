"""
Assembler registry: map (observation_type, value_type) -> assembler class.

Registration is an explicit static table at the bottom of this module.
Assemblers are cheap and bound to one session; create one per request.
"""

from typing import Dict, Optional, Tuple, Type

from sqlalchemy.orm import Session

from series_service.assembler.base import ValueAssembler
from series_service.assembler.values import (
    BooleanValueAssembler,
    CountValueAssembler,
    QuantityValueAssembler,
    RecordValueAssembler,
    TextValueAssembler,
)
from series_service.errors import AssemblerNotFoundError

Key = Tuple[str, str]


class AssemblerRegistry:
    """Maps (observation_type, value_type) to assembler class. Caller instantiates."""

    def __init__(self) -> None:
        self._assemblers: Dict[Key, Type[ValueAssembler]] = {}

    def register(self, observation_type: str, value_type: str, assembler_cls: Type[ValueAssembler]) -> None:
        self._assemblers[(observation_type, value_type)] = assembler_cls

    def get(self, observation_type: str, value_type: str) -> Optional[Type[ValueAssembler]]:
        return self._assemblers.get((observation_type, value_type))

    def create(self, observation_type: str, value_type: str, session: Session, no_data=None) -> ValueAssembler:
        assembler_cls = self.get(observation_type, value_type)
        if assembler_cls is None:
            raise AssemblerNotFoundError(
                f"No value assembler registered for observation_type={observation_type!r}, "
                f"value_type={value_type!r}"
            )
        return assembler_cls(session, no_data)

    def create_for(self, dataset, session: Session, no_data=None) -> ValueAssembler:
        return self.create(dataset.observation_type, dataset.value_type, session, no_data)

    def list_types(self) -> list[Key]:
        return list(self._assemblers.keys())


assembler_registry = AssemblerRegistry()

assembler_registry.register("simple", "quantity", QuantityValueAssembler)
assembler_registry.register("simple", "count", CountValueAssembler)
assembler_registry.register("simple", "text", TextValueAssembler)
assembler_registry.register("simple", "boolean", BooleanValueAssembler)
assembler_registry.register("simple", "record", RecordValueAssembler)
