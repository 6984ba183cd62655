"""
Run the manager against a real (in-memory) SQLite database through pydal.

SQLite does not support qualified SET columns, multi-table DELETE or FOUND_ROWS(),
so Query.update(), Query.delete() and calc_found_rows() are covered by test_mysql.py.
"""

import pytest

from scopedal import Manager, Model, ScopeDAL, Sequence, StatementError, Timestamps, relationship

SCHEMA = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT)",
    "CREATE TABLE posts (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, title TEXT, "
    "creation_date TEXT, update_date TEXT)",
    "CREATE TABLE comments (id INTEGER PRIMARY KEY AUTOINCREMENT, post_id INTEGER, user_id INTEGER, body TEXT)",
    "CREATE TABLE chapters (id INTEGER PRIMARY KEY AUTOINCREMENT, book_id INTEGER, title TEXT, `index` INTEGER)",
]


class User(Model):
    id: int
    name: str


class Post(Model, plugins=[Timestamps]):
    id: int
    user_id: int
    title: str

    author = relationship(User, on={"user_id": "id"})
    comments = relationship(list["Comment"], on={"id": "post_id"})


class Comment(Model):
    id: int
    post_id: int
    user_id: int
    body: str

    author = relationship(User, on={"user_id": "id"})


class Chapter(Model, plugins=[Sequence], sequence_group_fields=["book_id"]):
    id: int
    book_id: int
    title: str


@pytest.fixture
def db(tmp_path):
    db = ScopeDAL("sqlite:memory", folder=tmp_path, use_pyproject=False, use_env=False)
    for statement in SCHEMA:
        db.exec(statement)
    yield db
    db.close()


@pytest.fixture
def manager(db):
    manager = Manager(db)
    manager.associate(User, table="users")
    manager.associate(Post, table="posts")
    manager.associate(Comment, table="comments")
    manager.associate(Chapter, table="chapters")
    return manager


@pytest.fixture
def blog(manager):
    alice = User(name="alice")
    bob = User(name="bob")
    manager.save(alice)
    manager.save(bob)

    first = Post(user_id=alice.id, title="first")
    second = Post(user_id=bob.id, title="second")
    manager.save(first)
    manager.save(second)

    manager.multi_insert(
        [
            Comment(post_id=first.id, user_id=bob.id, body="nice"),
            Comment(post_id=first.id, user_id=alice.id, body="thanks"),
        ]
    )
    return manager


def test_connection_contract(db):
    statement = db.prepare("SELECT ? AS a, ? AS b")
    assert statement.execute([1, "two"])
    assert statement.fetch_all() == [{"a": 1, "b": "two"}]

    statement = db.query("SELECT 1 AS a UNION ALL SELECT 2")
    assert statement.fetch(False) == (1,)
    assert statement.fetch() == {"a": 2}
    assert statement.fetch() is None

    assert db.quote(None) == "NULL"
    assert db.quote(True) == "1"
    assert db.quote("it's") == "'it''s'"
    assert db.error_code() == "00000"


def test_failing_statement(db, manager):
    with pytest.warns(RuntimeWarning):
        assert db.exec("SELECT * FROM nope") == 0
    assert db.error_code() != "00000"
    assert db.error_info()[1]

    with pytest.warns(RuntimeWarning), pytest.raises(StatementError):
        manager.select("Post").where("@missing = 1").all()


def test_crud(manager):
    user = User(name="alice")
    assert manager.save(user)
    assert user.id == 1

    loaded = manager.get(User, 1)
    assert loaded.name == "alice"
    assert not loaded.is_new()

    loaded.name = "O'Hara"
    assert loaded.save()
    assert manager.get(User, 1).name == "O'Hara"

    assert loaded.refresh()
    assert loaded.delete()
    assert manager.get(User, 1) is None
    assert not loaded.delete()


def test_timestamps(blog):
    post = blog.select("Post").where("@title = ?", ["first"]).first()
    assert post.creation_date
    assert post.creation_date == post.update_date


def test_hydrate_joins(blog):
    posts = (
        blog.select("Post")
        .with_("@author")
        .with_("@comments")
        .with_("@comments.author")
        .order("@title")
        .order("@comments.body")
        .all()
    )

    assert [post.title for post in posts] == ["first", "second"]
    first, second = posts
    assert first.author.name == "alice"
    assert [comment.body for comment in first.comments] == ["nice", "thanks"]
    assert [comment.author.name for comment in first.comments] == ["bob", "alice"]
    assert second.author.name == "bob"
    assert second.comments == []

    as_dicts = blog.select_assoc("Post").with_("@comments").order("@title").order("@comments.body").all()
    assert as_dicts[0]["comments"][0]["body"] == "nice"


def test_filters(blog):
    commented_by_bob = (
        blog.select("Post")
        .with_("@comments", "@comments.user_id = ?", fetch=False, params=[2])
        .where("@comments.id IS NOT NULL")
        .all()
    )
    assert [post.title for post in commented_by_bob] == ["first"]

    assert blog.select("Post").with_("@comments").count() == 3
    assert blog.select("Post").count() == 2
    assert blog.select("Post").where("@title = ?", ["third"]).exists() is False

    counted = (
        blog.select_assoc("Post")
        .with_("@comments", fetch=False)
        .alias("COUNT(@comments.id)", "@comment_count")
        .group_by("@title")
        .having("@comment_count > ?", [1])
        .all()
    )
    assert [(row["title"], row["comment_count"]) for row in counted] == [("first", 2)]


def test_static_model(blog):
    assert blog.Post.by_id(2).first().title == "second"
    assert blog.Post.get_by_id(1).title == "first"
    assert len(blog.Post.all()) == 2


def test_sequence_insert(manager):
    for title in "abc":
        manager.save(Chapter(book_id=1, title=title))
    manager.save(Chapter(book_id=2, title="other"))

    chapters = manager.Chapter.all(assoc=True)
    assert sorted((row["book_id"], row["index"], row["title"]) for row in chapters) == [
        (1, 0, "a"),
        (1, 1, "b"),
        (1, 2, "c"),
        (2, 0, "other"),
    ]
    assert manager.Chapter.scope(lambda q: q.where("@book_id = ?", [1])).get_max_index() == 2
