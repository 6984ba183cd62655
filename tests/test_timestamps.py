import datetime as dt

import pytest

from scopedal import Model, Timestamps


class Article(Model, plugins=[Timestamps]):
    id: int
    title: str


@pytest.fixture
def news(manager):
    manager.associate(Article, table="articles")
    return manager


def test_fields():
    assert Article.describe().fields == ("id", "title", "creation_date", "update_date")
    assert Article().creation_date is None


def test_insert_sets_both(news, fake):
    before = dt.datetime.now().replace(microsecond=0)
    article = Article(title="hello")

    news.save(article)

    assert article.creation_date == article.update_date
    assert article.creation_date >= before
    assert article.creation_date.microsecond == 0
    assert f"'{article.creation_date}'" in fake.sql[0]


def test_update_touches_update_date(news, fake):
    old = dt.datetime(2020, 1, 1)
    article = Article(id=1, title="a", creation_date=old, update_date=old).set_manager(news).mark_as_saved()

    article.save()

    assert article.creation_date == old
    assert article.update_date > old


def test_disable_timestamps(news, fake):
    old = dt.datetime(2020, 1, 1)
    article = Article(id=1, title="a", creation_date=old, update_date=old).set_manager(news).mark_as_saved()

    article.disable_timestamps()
    article.save()
    assert article.update_date == old

    article.enable_timestamps()
    article.save()
    assert article.update_date > old

    # the switch is per record:
    other = Article(title="b").set_manager(news)
    article.disable_timestamps()
    other.save()
    assert other.creation_date is not None
