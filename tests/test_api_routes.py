import io
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from redis.exceptions import ConnectionError as RedisConnectionError


class FakeRedis:
    def __init__(self):
        self._values = {}

    def set(self, name, value, ex=None):
        self._values[name] = value
        return True

    def exists(self, *names):
        return sum(1 for name in names if name in self._values)


class UnreachableRedis:
    def set(self, name, value, ex=None):
        raise RedisConnectionError("Error 111 connecting to redis")

    def exists(self, *names):
        raise RedisConnectionError("Error 111 connecting to redis")


class TestApiRoutes(unittest.TestCase):
    def setUp(self):
        from board import create_app

        self.tmp_dir = tempfile.mkdtemp()
        self.upload_dir = os.path.join(self.tmp_dir, "uploads")
        self.app = create_app({
            "TESTING": True,
            "JWT_SECRET_KEY": "test-secret-key-with-at-least-32-bytes",
            "USERS_FILE": os.path.join(self.tmp_dir, "users.json"),
            "POSTS_FILE": os.path.join(self.tmp_dir, "posts.json"),
            "UPLOAD_FOLDER": self.upload_dir,
            "PASSWORD_HASH_METHOD": "pbkdf2:sha256:1000",
            "MAX_UPLOAD_FILES": 3,
            "MAX_FILE_SIZE": 1024,
            "ATTACHMENT_BACKEND": "local",
        })
        self.client = self.app.test_client()

        self.fake_redis = FakeRedis()
        self.redis_patch = patch(
            "board.services.token_service.get_redis_client",
            return_value=self.fake_redis,
        )
        self.redis_patch.start()

    def tearDown(self):
        self.redis_patch.stop()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _register(self, username, password="secret1"):
        response = self.client.post(
            "/api/auth/register",
            json={"username": username, "password": password},
        )
        self.assertEqual(response.status_code, 201)

    def _tokens(self, username, password="secret1"):
        response = self.client.post(
            "/api/auth/login",
            json={"username": username, "password": password},
        )
        self.assertEqual(response.status_code, 200)
        return response.get_json()

    def _auth_header(self, username, password="secret1"):
        token = self._tokens(username, password)["access_token"]
        return {"Authorization": f"Bearer {token}"}

    def _create_post(self, headers, title="hi", content="world", files=None):
        if files is None:
            files = [(io.BytesIO(b"png-bytes"), "f1.png", "image/png")]
        return self.client.post(
            "/api/posts",
            data={"title": title, "content": content, "files": files},
            headers=headers,
            content_type="multipart/form-data",
        )

    def test_auth_register_and_login_success(self):
        self._register("alice")
        body = self._tokens("alice")
        self.assertEqual(body["username"], "alice")
        self.assertIn("access_token", body)
        self.assertIn("refresh_token", body)

    def test_auth_register_accepts_form_encoding(self):
        response = self.client.post(
            "/api/auth/register",
            data={"username": "alice", "password": "secret1"},
        )
        self.assertEqual(response.status_code, 201)
        self._tokens("alice")

    def test_auth_register_duplicate_username(self):
        self._register("alice")
        response = self.client.post(
            "/api/auth/register",
            json={"username": "alice", "password": "other"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Username already exists")

    def test_auth_rejects_invalid_json(self):
        response = self.client.post(
            "/api/auth/register",
            data="not-json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Invalid JSON body")

    def test_auth_register_rejects_missing_password(self):
        response = self.client.post("/api/auth/register", json={"username": "alice"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Missing fields")

    def test_auth_login_wrong_password(self):
        self._register("alice")
        response = self.client.post(
            "/api/auth/login",
            json={"username": "alice", "password": "nope"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "Invalid username or password")

    def test_auth_refresh_returns_access_token(self):
        self._register("alice")
        refresh = self._tokens("alice")["refresh_token"]

        response = self.client.post(
            "/api/auth/refresh",
            headers={"Authorization": f"Bearer {refresh}"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["access_token"])

    def test_auth_refresh_rejects_access_token(self):
        self._register("alice")
        response = self.client.post("/api/auth/refresh", headers=self._auth_header("alice"))
        self.assertEqual(response.status_code, 422)

    def test_logout_revokes_token(self):
        self._register("alice")
        headers = self._auth_header("alice")

        logout = self.client.post("/api/auth/logout", headers=headers)
        self.assertEqual(logout.status_code, 200)

        response = self._create_post(headers)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "Token has been revoked")

    def test_session_store_outage_is_a_json_503(self):
        self._register("alice")
        headers = self._auth_header("alice")

        with patch(
            "board.services.token_service.get_redis_client",
            return_value=UnreachableRedis(),
        ):
            create = self._create_post(headers)
            logout = self.client.post("/api/auth/logout", headers=headers)

        for response in (create, logout):
            self.assertEqual(response.status_code, 503)
            self.assertEqual(response.get_json()["error"], "Session store is unavailable")
        self.assertEqual(self.client.get("/api/posts").get_json(), [])

    def test_create_post_requires_auth(self):
        response = self._create_post(headers={})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "You must be logged in")

    def test_create_post_requires_files(self):
        self._register("alice")
        response = self._create_post(self._auth_header("alice"), files=[])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "No files uploaded")

    def test_create_post_requires_title(self):
        self._register("alice")
        response = self.client.post(
            "/api/posts",
            data={"files": [(io.BytesIO(b"x"), "f1.png", "image/png")]},
            headers=self._auth_header("alice"),
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("title", response.get_json()["fields"])

    def test_create_post_rejects_too_many_files(self):
        self._register("alice")
        files = [(io.BytesIO(b"x"), f"img{i}.png", "image/png") for i in range(4)]

        response = self._create_post(self._auth_header("alice"), files=files)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Maximum 3 files allowed")
        self.assertFalse(os.path.exists(self.upload_dir))

    def test_create_post_rejects_oversized_file(self):
        self._register("alice")
        files = [(io.BytesIO(b"x" * 2048), "big.bin", "application/octet-stream")]

        response = self._create_post(self._auth_header("alice"), files=files)

        self.assertEqual(response.status_code, 413)

    def test_post_lifecycle_between_two_users(self):
        self._register("alice")
        self._register("bob")
        alice = self._auth_header("alice")
        bob = self._auth_header("bob")

        created = self._create_post(alice)
        self.assertEqual(created.status_code, 201)
        body = created.get_json()
        self.assertEqual(body["index"], 0)
        stored_name = body["post"]["files"][0]
        self.assertTrue(stored_name.endswith("-f1.png"))

        listed = self.client.get("/api/posts").get_json()
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]["title"], "hi")
        self.assertEqual(listed[0]["content"], "world")
        self.assertEqual(listed[0]["author"], "alice")
        self.assertEqual(listed[0]["files"], [stored_name])
        self.assertTrue(listed[0]["id"])
        self.assertTrue(listed[0]["date"].endswith("Z"))

        forbidden = self.client.delete("/api/posts/0", headers=bob)
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(self.client.get("/api/posts").get_json(), listed)
        self.assertEqual(self.client.get(f"/download/{stored_name}").status_code, 200)

        deleted = self.client.delete("/api/posts/0", headers=alice)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/posts").get_json(), [])
        self.assertEqual(self.client.get(f"/download/{stored_name}").status_code, 404)

    def test_edit_post(self):
        self._register("alice")
        self._register("bob")
        alice = self._auth_header("alice")
        self._create_post(alice)

        forbidden = self.client.put(
            "/api/posts/0",
            json={"title": "pwned"},
            headers=self._auth_header("bob"),
        )
        self.assertEqual(forbidden.status_code, 403)

        response = self.client.put(
            "/api/posts/0",
            json={"title": "renamed", "author": "bob", "files": []},
            headers=alice,
        )
        self.assertEqual(response.status_code, 200)
        post = response.get_json()["post"]
        self.assertEqual(post["title"], "renamed")
        self.assertEqual(post["content"], "world")
        self.assertEqual(post["author"], "alice")
        self.assertEqual(len(post["files"]), 1)

    def test_edit_post_rejects_empty_patch(self):
        self._register("alice")
        alice = self._auth_header("alice")
        self._create_post(alice)

        response = self.client.put("/api/posts/0", json={"author": "bob"}, headers=alice)
        self.assertEqual(response.status_code, 400)

        response = self.client.put(
            "/api/posts/0",
            data="not-json",
            headers={**alice, "Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "Invalid JSON body")

    def test_invalid_indices(self):
        self._register("alice")
        alice = self._auth_header("alice")
        self._create_post(alice)

        for index in ("1", "-1", "abc"):
            with self.subTest(index=index):
                response = self.client.delete(f"/api/posts/{index}", headers=alice)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.get_json()["error"], "Invalid post index")

    def test_stale_index_with_expected_id_conflicts(self):
        self._register("alice")
        alice = self._auth_header("alice")
        ids = [
            self._create_post(alice, title=title).get_json()["post"]["id"]
            for title in ("one", "two")
        ]

        self.client.delete("/api/posts/0", headers=alice)

        conflict = self.client.put(
            "/api/posts/0",
            json={"title": "x", "expected_id": ids[0]},
            headers=alice,
        )
        self.assertEqual(conflict.status_code, 409)

        conflict = self.client.delete(f"/api/posts/0?expected_id={ids[0]}", headers=alice)
        self.assertEqual(conflict.status_code, 409)

        ok = self.client.delete(f"/api/posts/0?expected_id={ids[1]}", headers=alice)
        self.assertEqual(ok.status_code, 200)

    def test_id_addressed_routes(self):
        self._register("alice")
        self._register("bob")
        alice = self._auth_header("alice")
        post_id = self._create_post(alice).get_json()["post"]["id"]

        forbidden = self.client.delete(f"/api/posts/id/{post_id}", headers=self._auth_header("bob"))
        self.assertEqual(forbidden.status_code, 403)

        edited = self.client.put(f"/api/posts/id/{post_id}", json={"content": "c2"}, headers=alice)
        self.assertEqual(edited.status_code, 200)
        self.assertEqual(edited.get_json()["post"]["content"], "c2")

        deleted = self.client.delete(f"/api/posts/id/{post_id}", headers=alice)
        self.assertEqual(deleted.status_code, 200)

        missing = self.client.delete(f"/api/posts/id/{post_id}", headers=alice)
        self.assertEqual(missing.status_code, 404)

    def test_download_and_inline_file_routes(self):
        self._register("alice")
        created = self._create_post(self._auth_header("alice")).get_json()
        stored_name = created["post"]["files"][0]

        download = self.client.get(f"/download/{stored_name}")
        self.assertEqual(download.status_code, 200)
        self.assertEqual(download.data, b"png-bytes")
        self.assertEqual(download.mimetype, "image/png")
        self.assertIn("attachment", download.headers["Content-Disposition"])
        self.assertIn(stored_name, download.headers["Content-Disposition"])
        self.assertIn("max-age=", download.headers["Cache-Control"])
        etag = download.headers["ETag"]

        inline = self.client.get(f"/files/{stored_name}")
        self.assertEqual(inline.status_code, 200)
        self.assertEqual(inline.data, b"png-bytes")
        self.assertNotIn("Content-Disposition", inline.headers)

        head = self.client.head(f"/files/{stored_name}")
        self.assertEqual(head.status_code, 200)
        self.assertEqual(head.data, b"")
        self.assertEqual(head.headers["Content-Length"], str(len(b"png-bytes")))

        cached = self.client.get(f"/files/{stored_name}", headers={"If-None-Match": etag})
        self.assertEqual(cached.status_code, 304)
        self.assertEqual(cached.data, b"")

    def test_download_unknown_file_is_404(self):
        response = self.client.get("/download/1700000000000-missing.png")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "File not found")

    def test_corrupt_posts_file_is_503(self):
        with open(os.path.join(self.tmp_dir, "posts.json"), "w", encoding="utf-8") as fh:
            fh.write("{broken")

        response = self.client.get("/api/posts")
        self.assertEqual(response.status_code, 503)

    def test_posts_file_with_non_object_entry_is_503(self):
        with open(os.path.join(self.tmp_dir, "posts.json"), "w", encoding="utf-8") as fh:
            fh.write("[1]")

        response = self.client.get("/api/posts")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.get_json()["error"], "Could not read posts.json")


if __name__ == "__main__":
    unittest.main()
