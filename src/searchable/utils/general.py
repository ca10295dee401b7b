from abc import ABCMeta
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, ClassVar, override

from pydantic import BaseModel, Secret, SecretBytes, SecretStr
from pydantic_core import PydanticUndefinedType
from pydantic_settings import BaseSettings
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from searchable.types.general import JsonSerializable

yaml = YAML()

DEFAULTS_HEADER = "\n".join(
    [
        "Default configuration values.",
        "Managed by searchable.",
        "Don't edit this file, it will be overwritten.",
        "Copy the values you want to change into config/config.yaml instead.",
    ]
)


class Singleton(ABCMeta):
    """Singleton metaclass that ensures classes using it have only one instance."""

    _instances: ClassVar[dict["Singleton", "Singleton"]] = {}

    @override
    def __call__(cls, *args: Any, **kwargs: Any) -> "Singleton":
        """Ensure calls go to one instance."""
        if cls not in cls._instances:
            cls._instances[cls] = super().__call__(*args, **kwargs)
        return cls._instances[cls]

    @classmethod
    def reset(mcs, cls: "Singleton | None" = None) -> None:
        """Forget one (or every) instance, so the next call builds a new one."""
        if cls is None:
            mcs._instances.clear()
        else:
            mcs._instances.pop(cls, None)


CommentedSerializable = JsonSerializable | list[CommentedMap] | dict[str, CommentedMap]


class CommentedSettings(BaseSettings):
    """Pydantic BaseSettings which can dump its defaults as commented yaml."""

    @staticmethod
    def to_plain(obj: Any) -> CommentedSerializable | CommentedMap:
        """Recursively convert a value into something yaml can represent."""
        if isinstance(obj, BaseModel):
            return CommentedSettings.to_commented(obj)
        if isinstance(obj, Secret | SecretStr | SecretBytes):
            return CommentedSettings.to_plain(obj.get_secret_value())  # pyright:ignore[reportUnknownMemberType]
        if isinstance(obj, None | bool | int | float):
            return obj
        if isinstance(obj, Mapping):
            return {
                str(key): CommentedSettings.to_plain(value)  # pyright:ignore[reportUnknownArgumentType]
                for key, value in obj.items()  # pyright:ignore[reportUnknownVariableType]
            }
        if isinstance(obj, Iterable) and not isinstance(obj, str | bytes):
            return [CommentedSettings.to_plain(o) for o in obj]  # pyright:ignore[reportUnknownVariableType]
        return str(obj)

    @staticmethod
    def to_commented(obj: BaseModel | type[BaseModel]) -> CommentedMap:
        """Populate a commented mapping from a model instance or its class defaults."""
        model_cls = obj if isinstance(obj, type) else type(obj)
        commented = CommentedMap()
        for name, info in model_cls.model_fields.items():
            if isinstance(obj, BaseModel):
                value = getattr(obj, name)
            elif info.default_factory is not None:
                value = info.default_factory()  # pyright:ignore[reportCallIssue] No settings factory takes validated data
            else:
                value = info.default
            if isinstance(value, PydanticUndefinedType):
                continue

            commented[name] = CommentedSettings.to_plain(value)
            if info.description:
                commented.yaml_add_eol_comment(comment=info.description, key=name)  # pyright:ignore[reportUnknownMemberType]

        return commented

    @classmethod
    def write_default(cls, path: Path) -> None:
        """Write the settings defaults to a given path."""
        commented = CommentedSettings.to_commented(cls)
        commented.yaml_set_start_comment(DEFAULTS_HEADER)  # pyright:ignore[reportUnknownMemberType] ruamel uses unknowns
        path.parent.mkdir(parents=True, exist_ok=True)
        yaml.dump(commented, path)  # pyright:ignore[reportUnknownMemberType] ruamel uses unknowns
