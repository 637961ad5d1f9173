from dataclasses import MISSING, asdict, fields, is_dataclass
from typing import Any, TypeVar

T = TypeVar("T")


class EntityMixin:
    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        """
        Cria uma instância da entidade a partir de um dict.
        Chaves que não são campos da dataclass são ignoradas.
        """
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_model(cls: type[T], model: Any) -> T:
        """
        Cria uma entidade a partir de um modelo Django.

        Campos com default podem estar ausentes no model; chaves estrangeiras
        entram pelo atributo `<fk>_id` (declare o campo da entidade assim).
        """
        if not is_dataclass(cls):
            raise TypeError(f"{cls.__name__} deve ser um dataclass")
        data: dict[str, Any] = {}
        for f in fields(cls):
            if hasattr(model, f.name):
                data[f.name] = getattr(model, f.name)
            elif f.default is not MISSING or f.default_factory is not MISSING:
                continue
            else:
                raise AttributeError(f"{type(model).__name__} não possui '{f.name}'")
        return cls(**data)
