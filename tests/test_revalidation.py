"""Tests for revalidation module."""

from wwfm import cache, revalidation


def test_secrets_match():
    assert revalidation.secrets_match("s3cret", "s3cret")
    assert not revalidation.secrets_match("wrong", "s3cret")
    assert not revalidation.secrets_match(None, "s3cret")
    assert not revalidation.secrets_match("", "")


def test_extract_object_top_level_and_nested():
    assert revalidation.extract_object({"data": {"type": "episode", "slug": "a"}}) == ("episode", "a")
    nested = {"data": {"object": {"type": "posts", "slug": "b"}}}
    assert revalidation.extract_object(nested) == ("posts", "b")
    assert revalidation.extract_object({}) == (None, None)


def test_revalidate_episode_invalidates_tags():
    cache.put("episode:x", {"id": "x"}, tags=("episodes",))
    cache.put("search:all", [], tags=("search",))
    cache.put("posts:y", {}, tags=("posts",))

    paths = revalidation.revalidate_for("episode", "my-show")

    assert paths == ["/episode/my-show", "episodes", "/", "/shows"]
    assert cache.get("episode:x") is None
    assert cache.get("search:all") is None
    assert cache.get("posts:y") == {}


def test_revalidate_hosts_alias():
    assert revalidation.revalidate_for("regular-hosts", "ana") == ["/hosts/ana", "hosts", "/"]


def test_revalidate_without_slug():
    assert revalidation.revalidate_for("videos") == ["videos", "/", "/videos"]


def test_revalidate_unknown_type():
    assert revalidation.revalidate_for("mystery", "x") == ["/", "/shows"]
    assert revalidation.revalidate_for(None) == ["/", "/shows"]
