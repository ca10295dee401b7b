from typing import Annotated, Literal

from pydantic import BeforeValidator

JsonSerializable = (
    dict[str, "JsonSerializable"] | list["JsonSerializable"] | str | int | float | bool | None
)

LogLevel = Annotated[
    Literal[
        "TRACE",
        "DEBUG",
        "INFO",
        "SUCCESS",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ],
    BeforeValidator(lambda a: str(a).upper()),
]
