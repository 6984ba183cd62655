import pytest

from scopedal import ONE_TO_ONE, Model, relationship
from scopedal.hydrator import Hydrator


class User(Model):
    id: int
    name: str


class Profile(Model):
    id: int
    user_id: int
    bio: str


class Post(Model):
    id: int
    user_id: int
    title: str

    author = relationship("User", on={"user_id": "id"})
    comments = relationship(list["Comment"], on={"id": "post_id"})


class Comment(Model):
    id: int
    post_id: int
    user_id: int
    body: str

    author = relationship(User, on={"user_id": "id"})


class Member(Model):
    id: int
    name: str

    profile = relationship("Profile", on={"id": "user_id"}, cardinality=ONE_TO_ONE)


def comment_row(post_id, title, comment_id, body, user_id=1, author_name="alice"):
    return {
        "id": post_id,
        "user_id": 1,
        "title": title,
        "comments.id": comment_id,
        "comments.post_id": post_id if comment_id else None,
        "comments.user_id": user_id if comment_id else None,
        "comments.body": body,
        "comments.author.id": user_id if comment_id else None,
        "comments.author.name": author_name if comment_id else None,
    }


ROWS = [
    {"id": 1, "user_id": 1, "title": "A", "comments.id": 10, "comments.post_id": 1, "comments.user_id": 1, "comments.body": "x"},
    {"id": 1, "user_id": 1, "title": "A", "comments.id": 11, "comments.post_id": 1, "comments.user_id": 2, "comments.body": "y"},
    {"id": 2, "user_id": 1, "title": "B", "comments.id": None, "comments.post_id": None, "comments.user_id": None, "comments.body": None},
]


@pytest.fixture
def blog(manager):
    for model, table in ((User, "users"), (Profile, "profiles"), (Post, "posts"), (Comment, "comments"), (Member, "members")):
        manager.associate(model, table=table)
    return manager


def test_split():
    assert Hydrator.split({"id": 1, "comments.id": 2, "comments.author.name": "a"}) == {
        "": {"id": 1},
        "comments": {"id": 2},
        "comments.author": {"name": "a"},
    }


def test_group_hash():
    descriptor = Post.describe()
    assert Hydrator.group_hash("", descriptor, {"id": 1}) == "@1"
    assert Hydrator.group_hash("comments", Comment.describe(), {"id": 10}) == "comments@10"
    assert Hydrator.group_hash("comments", Comment.describe(), {"id": None}) is None


def test_join_and_hydrate(blog, fake):
    fake.respond(*ROWS)

    posts = blog.select("Post").with_("@comments").order("@id").order("@comments.id").all()

    assert len(posts) == 2
    first, second = posts
    assert isinstance(first, Post)
    assert (first.id, first.title) == (1, "A")
    assert [comment.id for comment in first.comments] == [10, 11]
    assert all(isinstance(comment, Comment) for comment in first.comments)
    assert first.comments[1].body == "y"
    assert second.comments == []

    for record in (first, second, *first.comments):
        assert not record.is_new()
        assert record.get_manager() is blog


def test_hydrate_assoc(blog, fake):
    fake.respond(*ROWS)

    posts = blog.select_assoc("Post").with_("@comments").all()

    assert posts == [
        {
            "id": 1,
            "user_id": 1,
            "title": "A",
            "comments": [
                {"id": 10, "post_id": 1, "user_id": 1, "body": "x"},
                {"id": 11, "post_id": 1, "user_id": 2, "body": "y"},
            ],
        },
        {"id": 2, "user_id": 1, "title": "B", "comments": []},
    ]


def test_assoc_per_call(blog, fake):
    fake.respond(*ROWS)
    posts = blog.select("Post").with_("@comments").all(assoc=True)
    assert isinstance(posts[0], dict)


def test_deduplicate_by_primary_key(blog, fake):
    fake.respond(
        comment_row(1, "A", 10, "x"),
        comment_row(1, "A", 11, "y"),
        comment_row(1, "A", 11, "y"),
    )

    posts = blog.select("Post").with_("@comments").with_("@comments.author").all()

    assert len(posts) == 1
    comments = posts[0].comments
    assert [comment.id for comment in comments] == [10, 11]
    # same path and key: the very same entity
    assert comments[0].author is comments[1].author
    assert comments[0].author.name == "alice"


def test_many_to_one(blog, fake):
    fake.respond(
        {"id": 1, "user_id": 3, "title": "A", "author.id": 3, "author.name": "carol"},
        {"id": 2, "user_id": None, "title": "B", "author.id": None, "author.name": None},
    )

    first, second = blog.select("Post").with_("@author").all()

    assert isinstance(first.author, User)
    assert first.author.name == "carol"
    assert second.author is None


def test_one_to_one(blog, fake):
    fake.respond({"id": 1, "name": "m", "profile.id": 5, "profile.user_id": 1, "profile.bio": "hi"})

    member = blog.select("Member").with_("@profile").first()

    assert member.profile.bio == "hi"


def test_unfetched_relation_default(blog, fake):
    fake.respond({"id": 1, "user_id": 1, "title": "A"})

    post = blog.select("Post").first()

    assert post.comments == []
    assert post.author is None
    assert "comments" not in post


def test_alias_columns(blog, fake):
    fake.respond({"id": 1, "user_id": 1, "title": "A", "cn": 2})
    post = blog.select_assoc("Post").alias("COUNT(@id)", "@cn").first()
    assert post["cn"] == 2

    fake.respond({"id": 1, "user_id": 1, "title": "A", "cn": 2})
    post = blog.select("Post").alias("COUNT(@id)", "@cn").first()
    assert "cn" not in post.as_dict()


def test_null_root_rows_are_skipped(blog, fake):
    fake.respond({"id": None, "user_id": None, "title": None})
    assert blog.select("Post").all() == []
