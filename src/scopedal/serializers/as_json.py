"""
JSON serializer for records, collections and the values databases return.
"""

import datetime as dt
import decimal
import json
import typing as t

from configurablejson import ConfigurableJsonEncoder, JSONRule


class SerializedJson(ConfigurableJsonEncoder):
    """
    Custom encoder class with defaults for database values.
    """

    def _default(self, o: t.Any) -> t.Any:
        if hasattr(o, "__json__"):
            if callable(o.__json__):
                return o.__json__()
            else:
                return o.__json__
        elif hasattr(o, "as_dict"):
            return o.as_dict()
        elif hasattr(o, "to_dict"):
            return o.to_dict()
        elif hasattr(o, "__dict__"):
            return {k: v for k, v in o.__dict__.items() if not k.startswith("_")}

        return str(o)

    @t.overload
    def rules(self, o: t.Any, with_default: t.Literal[False]) -> JSONRule | None:
        """
        If you pass with_default=False, you could get a None result.
        """

    @t.overload
    def rules(self, o: t.Any, with_default: t.Literal[True] = True) -> JSONRule:
        """
        If you don't pass with_default=False, you will always get a JSONRule result.
        """

    def rules(self, o: t.Any, with_default: bool = True) -> JSONRule | None:
        """
        Custom rules for sets, dates and decimals; everything else goes through _default.
        """
        _type = type(o)

        _rules: dict[type[t.Any], JSONRule] = {
            set: JSONRule(preprocess=lambda o: list(o)),
            dt.datetime: JSONRule(transform=lambda o: o.isoformat(sep=" ")),
            dt.date: JSONRule(transform=lambda o: o.isoformat()),
            dt.time: JSONRule(transform=lambda o: o.isoformat()),
            decimal.Decimal: JSONRule(transform=lambda o: str(o)),
            bytes: JSONRule(transform=lambda o: o.decode(errors="replace")),
        }

        return _rules.get(_type, JSONRule(transform=self._default) if with_default else None)


def encode(something: t.Any, indent: t.Optional[int] = None, **kw: t.Any) -> str:
    """
    Encode anything to JSON with some improved defaults.
    """
    return json.dumps(something, indent=indent, cls=SerializedJson, **kw)
