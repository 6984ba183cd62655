import pytest

from scopedal import Model, Sequence, UnmovableModel


class Chapter(Model, plugins=[Sequence], sequence_group_fields=["book_id"]):
    id: int
    book_id: int
    title: str


class Step(Model, plugins=[Sequence]):
    id: int
    name: str


MAX_INDEX_SQL = (
    "SELECT `_master_`.*, MAX(`_master_`.`index`) AS `max_index`\n"
    "FROM chapters AS `_master_`\n"
    "WHERE (`_master_`.`book_id` = ?)\n"
    "LIMIT 0, 1"
)


@pytest.fixture
def book(manager):
    manager.associate(Chapter, table="chapters")
    manager.associate(Step, table="steps")
    return manager


def max_index_row(value):
    return {"id": 1, "book_id": 1, "title": "x", "index": value, "max_index": value}


def chapter(manager, index, **values):
    values = {"id": 7, "book_id": 1, "title": "c"} | values
    return Chapter(index=index, **values).set_manager(manager).mark_as_saved()


def test_index_field():
    assert Chapter.describe().fields == ("id", "book_id", "title", "index")
    assert Chapter(book_id=1).index is None


def test_max_index(book, fake):
    assert book.Chapter.scope(lambda q: q.where("@book_id = ?", [1])).get_max_index() == -1
    assert fake.statements == [(MAX_INDEX_SQL, [1])]

    fake.respond(max_index_row(4))
    assert book.Chapter.get_max_index() == 4


def test_insert_appends(book, fake):
    fake.respond(max_index_row(2))
    first = Chapter(book_id=1, title="a")
    assert book.save(first)
    assert first.index == 3

    # empty group:
    second = Chapter(book_id=2, title="b")
    assert book.save(second)
    assert second.index == 0

    assert fake.statements[0] == (MAX_INDEX_SQL, [1])
    assert fake.sql[1] == "INSERT INTO chapters\n(`id`, `book_id`, `title`, `index`)\nVALUES (NULL, 1, 'a', 3)"
    assert fake.statements[2] == (MAX_INDEX_SQL, [2])


def test_ungrouped(book, fake):
    step = Step(name="only")
    book.save(step)

    assert fake.sql[0] == (
        "SELECT `_master_`.*, MAX(`_master_`.`index`) AS `max_index`\nFROM steps AS `_master_`\nLIMIT 0, 1"
    )
    assert step.index == 0


def test_move_up(book, fake):
    record = chapter(book, 3)

    record.move(-2)

    assert fake.statements[0] == (
        "UPDATE chapters AS `_master_`\n"
        "SET `_master_`.`index` = `_master_`.`index` + 1\n"
        "WHERE (`_master_`.`book_id` = ?)\n"
        " AND (`_master_`.`index` >= ?)\n"
        " AND (`_master_`.`index` < ?)",
        [1, 1, 3],
    )
    assert fake.sql[1] == "UPDATE chapters\nSET `id` = 7, `book_id` = 1, `title` = 'c', `index` = 1\nWHERE `id` = 7"
    assert record.index == 1
    assert not record.field_changed("index")


def test_move_up_stops_at_zero(book, fake):
    record = chapter(book, 1)
    record.move_up(5)
    assert record.index == 0
    assert fake.params[0] == [1, 0, 1]

    fake.statements.clear()
    record.move_up()
    assert fake.statements == []


def test_move_down(book, fake):
    record = chapter(book, 1)
    fake.respond(max_index_row(4))

    record.move(10)

    assert fake.statements[1] == (
        "UPDATE chapters AS `_master_`\n"
        "SET `_master_`.`index` = `_master_`.`index` - 1\n"
        "WHERE (`_master_`.`book_id` = ?)\n"
        " AND (`_master_`.`index` > ?)\n"
        " AND (`_master_`.`index` <= ?)",
        [1, 1, 4],
    )
    assert record.index == 4


def test_move_down_at_end(book, fake):
    record = chapter(book, 4)
    fake.respond(max_index_row(4))

    record.move_down()

    assert len(fake.statements) == 1
    assert record.index == 4


def test_move_zero_steps(book, fake):
    chapter(book, 2).move(0)
    assert fake.statements == []


def test_unmovable(book):
    record = Chapter(book_id=1).set_manager(book)

    with pytest.raises(UnmovableModel):
        record.move(1)

    with pytest.raises(UnmovableModel):
        record.move_up()

    with pytest.raises(UnmovableModel):
        record.move_down()


def test_group_change(book, fake):
    record = chapter(book, 2)
    record.book_id = 5

    assert record.save()

    assert fake.statements[0] == (
        "UPDATE chapters AS `_master_`\n"
        "SET `_master_`.`index` = `_master_`.`index` - 1\n"
        "WHERE (`_master_`.`book_id` = ?)\n"
        " AND (`_master_`.`index` > ?)",
        [1, 2],
    )
    assert fake.params[1] == [5]
    assert fake.sql[2] == "UPDATE chapters\nSET `id` = 7, `book_id` = 5, `title` = 'c', `index` = 0\nWHERE `id` = 7"


def test_update_within_group(book, fake):
    record = chapter(book, 2)
    record.title = "renamed"
    record.save()

    assert len(fake.statements) == 1
    assert record.index == 2


def test_delete_closes_gap(book, fake):
    record = chapter(book, 2)

    assert record.delete()

    assert fake.statements == [
        ("DELETE FROM chapters\nWHERE `id` = 7", []),
        (
            "UPDATE chapters AS `_master_`\n"
            "SET `_master_`.`index` = `_master_`.`index` - 1\n"
            "WHERE (`_master_`.`book_id` = ?)\n"
            " AND (`_master_`.`index` > ?)",
            [1, 2],
        ),
    ]


def test_scopes_and_fetchers(book, fake):
    book.Chapter.at_index(2).order_by_index("DESC").all()
    assert fake.sql[-1].endswith("\nWHERE (`_master_`.`index` = ?)\nORDER BY `index` DESC")
    assert fake.params[-1] == [2]

    fake.respond({"id": 1, "book_id": 1, "title": "a", "index": 0})
    assert book.Chapter.get_first().title == "a"
    assert fake.params[-1] == [0]

    book.Chapter.get_last()
    assert fake.sql[-1].endswith("\nORDER BY `index` DESC\nLIMIT 0, 1")
