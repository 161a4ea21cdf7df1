import itertools
import threading

import pytest

from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.crud import engagement, post as crud_post, users as crud_users
from app.db.models.comment import Comment
from app.db.models.like import Like
from app.db.models.post import Post
from app.db.session import SessionLocal, atomic


@pytest.fixture
def people(db):
    ana = crud_users.upsert_user(db, "ext-1", "Ana", "ana@example.com")
    bob = crud_users.upsert_user(db, "ext-2", "Bob", "bob@example.com")
    return ana, bob


@pytest.fixture
def post_id(db, people):
    return crud_post.create(db, people[0], "hello")


def assert_counters_match_rows(db):
    for post in db.query(Post).all():
        assert post.likes_count == db.query(Like).filter(Like.post_id == post.id).count()
        assert post.comments_count == db.query(Comment).filter(Comment.post_id == post.id).count()


def hold_first_reads(monkeypatch, module, parties=2):
    """Make the first `parties` post reads wait for each other, so every writer starts from the same version."""
    barrier = threading.Barrier(parties)
    reads = itertools.count()
    original = module.get_post_for_update

    def held_read(db, post_id):
        post = original(db, post_id)
        if next(reads) < parties:
            barrier.wait(timeout=5)
        return post

    monkeypatch.setattr(module, "get_post_for_update", held_read)


def run_in_threads(*calls):
    """Run each call on its own thread and session; returns the errors raised."""
    errors = []

    def run(fn, args):
        session = SessionLocal()
        try:
            fn(session, *args)
        except Exception as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=call) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return errors


class TestLikes:

    def test_toggle_law(self, db, people, post_id):
        ana, _ = people
        assert engagement.toggle_like(db, post_id, ana) == {"liked": True}
        assert db.get(Post, post_id).likes_count == 1
        assert engagement.toggle_like(db, post_id, ana) == {"liked": False}
        assert db.get(Post, post_id).likes_count == 0

    def test_two_users_like(self, db, people, post_id):
        ana, bob = people
        engagement.toggle_like(db, post_id, ana)
        engagement.toggle_like(db, post_id, bob)

        assert crud_post.get_all_posts(db)[0].likes_count == 2
        assert_counters_match_rows(db)

    def test_has_user_liked(self, db, people, post_id):
        ana, bob = people
        engagement.toggle_like(db, post_id, ana)

        assert engagement.has_user_liked(db, post_id, ana) is True
        assert engagement.has_user_liked(db, post_id, bob) is False

    def test_post_likes_carry_user(self, db, people, post_id):
        ana, _ = people
        engagement.toggle_like(db, post_id, ana)

        likes = engagement.get_post_likes(db, post_id)
        assert len(likes) == 1
        assert likes[0].user.name == "Ana"

    def test_like_missing_post(self, db, people):
        with pytest.raises(NotFoundError):
            engagement.toggle_like(db, 999, people[0])
        assert db.query(Like).count() == 0

    def test_unlike_never_goes_negative(self, db, people, post_id):
        ana, _ = people
        engagement.toggle_like(db, post_id, ana)
        post = db.get(Post, post_id)
        post.likes_count = 0
        db.commit()

        assert engagement.toggle_like(db, post_id, ana) == {"liked": False}
        assert db.get(Post, post_id).likes_count == 0

    def test_duplicate_pair_is_a_conflict(self, db, people, post_id):
        ana, _ = people
        db.add(Like(post_id=post_id, user_id=ana))
        db.commit()

        with pytest.raises(ConflictError):
            with atomic(db):
                db.add(Like(post_id=post_id, user_id=ana))
        assert db.query(Like).count() == 1


class TestComments:

    def test_comment_scenario(self, db, people, post_id):
        _, bob = people
        engagement.create_comment(db, post_id, bob, "nice!")

        comments = engagement.get_post_comments(db, post_id)
        assert len(comments) == 1
        assert comments[0].content == "nice!"
        assert comments[0].author.name == "Bob"
        assert db.get(Post, post_id).comments_count == 1

    def test_create_returns_new_post_version(self, db, people, post_id):
        before = db.get(Post, post_id).version
        _, version = engagement.create_comment(db, post_id, people[1], "nice!")
        assert version == before + 1
        assert db.get(Post, post_id).version == version

    def test_comments_newest_first(self, db, people, post_id):
        for text in ("first", "second", "third"):
            engagement.create_comment(db, post_id, people[1], text)

        assert [c.content for c in engagement.get_post_comments(db, post_id)] == ["third", "second", "first"]

    def test_comment_on_missing_post(self, db, people):
        with pytest.raises(NotFoundError):
            engagement.create_comment(db, 999, people[0], "hello?")
        assert db.query(Comment).count() == 0

    def test_delete_decrements(self, db, people, post_id):
        comment_id, _ = engagement.create_comment(db, post_id, people[1], "nice!")
        engagement.delete_comment(db, comment_id, people[1])

        assert db.get(Post, post_id).comments_count == 0
        assert engagement.get_post_comments(db, post_id) == []

    def test_delete_floor_at_zero(self, db, people, post_id):
        comment_id, _ = engagement.create_comment(db, post_id, people[1], "nice!")
        post = db.get(Post, post_id)
        post.comments_count = 0
        db.commit()

        engagement.delete_comment(db, comment_id, people[1])
        assert db.get(Post, post_id).comments_count == 0

    def test_delete_missing_comment(self, db, people):
        with pytest.raises(NotFoundError):
            engagement.delete_comment(db, 31337, people[0])

    def test_only_author_deletes(self, db, people, post_id):
        ana, bob = people
        comment_id, _ = engagement.create_comment(db, post_id, bob, "mine")

        with pytest.raises(ForbiddenError):
            engagement.delete_comment(db, comment_id, ana)
        assert db.get(Post, post_id).comments_count == 1

    def test_counters_match_rows_after_mixed_activity(self, db, people, post_id):
        ana, bob = people
        second = crud_post.create(db, bob, "another")
        engagement.toggle_like(db, post_id, ana)
        engagement.toggle_like(db, post_id, bob)
        engagement.toggle_like(db, post_id, ana)
        engagement.toggle_like(db, second, ana)
        keep, _ = engagement.create_comment(db, post_id, ana, "a")
        drop, _ = engagement.create_comment(db, post_id, bob, "b")
        engagement.create_comment(db, second, bob, "c")
        engagement.delete_comment(db, drop, bob)

        assert_counters_match_rows(db)
        assert db.get(Post, post_id).likes_count == 1
        assert db.get(Post, post_id).comments_count == 1


class TestConcurrentCounters:

    def test_racing_comments_are_both_applied(self, db, people, post_id, monkeypatch):
        ana, bob = people
        hold_first_reads(monkeypatch, engagement)

        errors = run_in_threads(
            (engagement.create_comment, (post_id, ana, "first")),
            (engagement.create_comment, (post_id, bob, "second")),
        )

        assert errors == []
        db.expire_all()
        assert db.get(Post, post_id).comments_count == 2
        assert_counters_match_rows(db)

    def test_racing_comment_deletes_are_both_applied(self, db, people, post_id, monkeypatch):
        ana, bob = people
        mine, _ = engagement.create_comment(db, post_id, ana, "a")
        theirs, _ = engagement.create_comment(db, post_id, bob, "b")
        hold_first_reads(monkeypatch, engagement)

        errors = run_in_threads(
            (engagement.delete_comment, (mine, ana)),
            (engagement.delete_comment, (theirs, bob)),
        )

        assert errors == []
        db.expire_all()
        assert db.get(Post, post_id).comments_count == 0
        assert_counters_match_rows(db)

    def test_racing_shares_are_both_counted(self, db, post_id, monkeypatch):
        hold_first_reads(monkeypatch, crud_post)

        errors = run_in_threads(
            (crud_post.increment_share_count, (post_id,)),
            (crud_post.increment_share_count, (post_id,)),
        )

        assert errors == []
        db.expire_all()
        assert db.get(Post, post_id).shares_count == 2


class TestEngagementApi:

    def test_like_toggle_over_http(self, client, sign_up):
        _, ana = sign_up("ext-1", "Ana", "ana@example.com")
        _, bob = sign_up("ext-2", "Bob", "bob@example.com")
        post_id = client.post("/api/posts/", json={"content": "hello"}, headers=ana).json()["id"]

        assert client.post(f"/api/likes/{post_id}/toggle", headers=ana).json() == {"liked": True}
        assert client.post(f"/api/likes/{post_id}/toggle", headers=bob).json() == {"liked": True}
        assert client.get(f"/api/likes/{post_id}/me", headers=ana).json() == {"liked": True}
        assert client.get("/api/posts/").json()[0]["likes_count"] == 2
        assert len(client.get(f"/api/likes/{post_id}").json()) == 2

    def test_toggle_retries_once_after_conflict(self, client, sign_up, monkeypatch):
        _, ana = sign_up("ext-1", "Ana", "ana@example.com")
        post_id = client.post("/api/posts/", json={"content": "hello"}, headers=ana).json()["id"]
        original = engagement.toggle_like
        calls = []

        def racing_toggle(db, post_id, user_id):
            calls.append(post_id)
            if len(calls) == 1:
                raise ConflictError("lost the race")
            return original(db, post_id, user_id)

        monkeypatch.setattr(engagement, "toggle_like", racing_toggle)
        response = client.post(f"/api/likes/{post_id}/toggle", headers=ana)

        assert response.status_code == 200
        assert response.json() == {"liked": True}
        assert len(calls) == 2

    def test_toggle_surfaces_repeated_conflict(self, client, sign_up, monkeypatch):
        _, ana = sign_up("ext-1", "Ana", "ana@example.com")
        post_id = client.post("/api/posts/", json={"content": "hello"}, headers=ana).json()["id"]

        def always_conflicts(db, post_id, user_id):
            raise ConflictError("lost the race")

        monkeypatch.setattr(engagement, "toggle_like", always_conflicts)
        response = client.post(f"/api/likes/{post_id}/toggle", headers=ana)
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    def test_comment_flow_over_http(self, client, sign_up):
        _, ana = sign_up("ext-1", "Ana", "ana@example.com", avatar="https://cdn.example/ana.png")
        post_id = client.post("/api/posts/", json={"content": "hello"}, headers=ana).json()["id"]

        created = client.post("/api/comments/", json={"post_id": post_id, "content": "nice!"}, headers=ana)
        assert created.status_code == 201
        comment_id = created.json()["id"]

        comments = client.get(f"/api/comments/post/{post_id}").json()
        assert comments[0]["content"] == "nice!"
        assert comments[0]["author"]["avatar"] == "https://cdn.example/ana.png"

        deleted = client.delete(f"/api/comments/{comment_id}", headers=ana)
        assert deleted.status_code == 200
        assert client.get("/api/posts/").json()[0]["comments_count"] == 0

    def test_empty_comment_is_validation(self, client, sign_up):
        _, ana = sign_up("ext-1", "Ana", "ana@example.com")
        response = client.post("/api/comments/", json={"post_id": 1, "content": ""}, headers=ana)
        assert response.status_code == 422

    def test_comments_of_deleted_post_are_empty(self, client, sign_up):
        _, ana = sign_up("ext-1", "Ana", "ana@example.com")
        post_id = client.post("/api/posts/", json={"content": "hello"}, headers=ana).json()["id"]
        client.post("/api/comments/", json={"post_id": post_id, "content": "x"}, headers=ana)
        client.post(f"/api/likes/{post_id}/toggle", headers=ana)
        client.delete(f"/api/posts/{post_id}", headers=ana)

        assert client.get(f"/api/comments/post/{post_id}").json() == []
        assert client.get(f"/api/likes/{post_id}").json() == []
