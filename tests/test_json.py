import datetime as dt
import decimal
import json

from scopedal import Collection, Model, relationship
from scopedal.serializers.as_json import SerializedJson, encode


class CustomClass:
    value: int

    def __init__(self):
        self.value = 3
        self._hidden = "nope"


class JsonableCustomClass(CustomClass):
    def __json__(self):
        return {"the_value": self.value}


class Author(Model):
    id: int
    name: str

    books = relationship(list["Book"], on={"id": "author_id"})


class Book(Model):
    id: int
    author_id: int
    title: str


encoder = SerializedJson()


def test_set():
    dumped = encode({1, 2, 3})
    loaded: list = json.loads(dumped)
    loaded.sort()  # set order not guaranteed

    assert loaded == [1, 2, 3]


def test_datetime():
    now = dt.datetime.now()
    today = dt.date.today()
    time = now.time()

    assert encode(now) == f'"{now}"'
    assert encode(today) == f'"{today}"'
    assert encode(time) == f'"{time}"'

    assert encoder.default(now) == str(now)
    assert encoder.default(today) == str(today)


def test_database_values():
    assert encode(decimal.Decimal("1.10")) == '"1.10"'
    assert encode(b"blob") == '"blob"'


def test_classes():
    assert encoder.default(CustomClass()) == {"value": 3}
    assert encode(CustomClass()) == '{"value": 3}'

    assert encoder.default(JsonableCustomClass()) == {"the_value": 3}
    assert encode(JsonableCustomClass()) == '{"the_value": 3}'

    instance = CustomClass()
    instance.__json__ = "<private information>"
    assert encoder.default(instance) == "<private information>"
    assert encode([instance]) == '["<private information>"]'


def test_records():
    author = Author(id=1, name="Ann")
    author.__dict__["books"] = [Book(id=2, author_id=1, title="Tales")]

    assert json.loads(author.as_json()) == {
        "id": 1,
        "name": "Ann",
        "books": [{"id": 2, "author_id": 1, "title": "Tales"}],
    }
    assert json.loads(encode([author])) == [json.loads(author.as_json())]


def test_collection():
    rows = Collection([Book(id=1, author_id=1, title="a")], found_rows=10)

    assert json.loads(rows.as_json()) == {
        "data": [{"id": 1, "author_id": 1, "title": "a"}],
        "found_rows": 10,
    }
