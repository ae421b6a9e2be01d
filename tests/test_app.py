"""Tests for perch.app — App registration, dispatch, mounts, and ASGI entry."""

from typing import Any

import pytest

from perch.app import App
from perch.config import AppConfig
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.route import Route
from perch.routing.table import RouteTable
from perch.testing import TestClient


class TestAppRegistration:
    def test_route_decorator_returns_function(self) -> None:
        app = App()

        @app.get("/")
        def index():
            return "hello"

        assert callable(index)
        assert [r.path for r in app.routes] == ["/"]

    def test_direct_registration_returns_route(self) -> None:
        app = App()
        route = app.get("/hola", lambda: "Hola")
        assert isinstance(route, Route)
        assert route.method == "GET"

    def test_route_with_explicit_method(self) -> None:
        app = App()
        route = app.route("link", "/doc/:id", lambda: "")
        assert route.method == "LINK"

    def test_options_stored_on_route(self) -> None:
        app = App()
        route = app.get("/admin", lambda: "", layout="admin")
        assert route.options == {"layout": "admin"}

    def test_error_decorator(self) -> None:
        app = App()

        @app.error(404)
        def not_found():
            return "Not found"

        assert 404 in app._error_handlers

    def test_middleware_registration(self) -> None:
        app = App()

        async def my_mw(request, next):
            return await next(request)

        app.add_middleware(my_mw)
        app.use(my_mw)
        assert len(app._middleware_list) == 2

    def test_path_for_and_url_for(self) -> None:
        app = App()
        app.get("/user/:id/settings", lambda: "")
        assert app.path_for("user_settings_path", 42) == "/user/42/settings"
        assert app.url_for("http://localhost:8000", "user_settings_path", 42) == (
            "http://localhost:8000/user/42/settings"
        )


class TestAppFreeze:
    async def test_registration_after_first_request(self) -> None:
        app = App()
        app.get("/", lambda: "ok")

        async with TestClient(app) as client:
            await client.get("/")

        with pytest.raises(RuntimeError, match="Cannot modify"):
            app.get("/late", lambda: "late")
        with pytest.raises(RuntimeError):
            app.mount("/late", App())

    def test_freeze_is_idempotent(self) -> None:
        app = App()
        app._ensure_frozen()
        app._ensure_frozen()
        assert app.routes.frozen


class TestDispatch:
    async def test_plain_string(self) -> None:
        app = App()
        app.get("/", lambda: "Hello, World!")

        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 200
        assert response.text == "Hello, World!"
        assert response.content_type == "text/html"

    async def test_path_param_converted_by_annotation(self) -> None:
        app = App()

        @app.get("/user/:id")
        def show(id: int):
            return f"{id + 1}"

        async with TestClient(app) as client:
            response = await client.get("/user/41")
        assert response.text == "42"

    async def test_request_params_and_options(self) -> None:
        app = App()

        @app.get("/search/:term", layout="wide")
        def search(request: Request, params, options):
            return f"{request.path}|{params['term']}|{params['page']}|{options['layout']}"

        async with TestClient(app) as client:
            response = await client.get("/search/birds?page=3")
        assert response.text == "/search/birds|birds|3|wide"

    async def test_var_keyword_receives_path_params(self) -> None:
        app = App()

        @app.get("/a/:x/b/:y")
        def both(**kwargs):
            return f"{kwargs['x']}-{kwargs['y']}"

        async with TestClient(app) as client:
            response = await client.get("/a/1/b/2")
        assert response.text == "1-2"

    async def test_async_handler(self) -> None:
        app = App()

        @app.post("/echo")
        async def echo(request):
            return await request.text()

        async with TestClient(app) as client:
            response = await client.post("/echo", body=b"ping")
        assert response.text == "ping"

    async def test_json_body_and_response(self) -> None:
        app = App()

        @app.put("/items/:id")
        async def update(request, id):
            data = await request.json()
            return {"id": id, **data}

        async with TestClient(app) as client:
            response = await client.request(
                "PUT",
                "/items/5",
                headers={"content-type": "application/json"},
                body=b'{"name": "x"}',
            )
        assert response.content_type == "application/json"
        assert response.text == '{"id": "5", "name": "x"}'

    async def test_triple_return(self) -> None:
        app = App()
        app.post("/user", lambda: (201, {"X-Id": "9"}, ["created"]))

        async with TestClient(app) as client:
            response = await client.post("/user")
        assert response.status == 201
        assert response.text == "created"
        assert ("x-id", "9") in response.headers

    async def test_response_object(self) -> None:
        app = App()
        app.get("/r", lambda: Response("custom", status=202).with_header("X-A", "b"))

        async with TestClient(app) as client:
            response = await client.get("/r")
        assert response.status == 202
        assert ("x-a", "b") in response.headers

    async def test_method_mismatch_is_not_found(self) -> None:
        app = App()
        app.post("/user", lambda: "created")

        async with TestClient(app) as client:
            response = await client.get("/user")
        assert response.status == 404

    async def test_method_override(self) -> None:
        app = App()
        app.delete("/user/:id", lambda id: f"deleted {id}")

        async with TestClient(app) as client:
            response = await client.post("/user/3?_method=delete")
        assert response.text == "deleted 3"

    async def test_link_and_unlink(self) -> None:
        app = App()
        app.link("/doc/:id", lambda id: f"linked {id}")
        app.unlink("/doc/:id", lambda id: f"unlinked {id}")

        async with TestClient(app) as client:
            assert (await client.link("/doc/1")).text == "linked 1"
            assert (await client.unlink("/doc/1")).text == "unlinked 1"

    async def test_head_sends_no_body(self) -> None:
        app = App()
        app.head("/ping", lambda: "pong")
        app.get("/only-get", lambda: "x")

        async with TestClient(app) as client:
            response = await client.head("/ping")
            assert response.status == 200
            assert response.body == b""
            assert (await client.head("/only-get")).status == 404

    async def test_first_registered_route_wins(self) -> None:
        app = App()
        app.get("/user/:id", lambda id: "by id")
        app.get("/user/new", lambda: "new form")

        async with TestClient(app) as client:
            response = await client.get("/user/new")
        assert response.text == "by id"


class TestNotFoundPage:
    async def test_development_lists_routes(self) -> None:
        app = App()

        @app.get("/user/:id")
        def show_user(id):
            return id

        async with TestClient(app) as client:
            response = await client.get("/missing")
        assert response.status == 404
        assert response.content_type == "text/html"
        assert "<h1>Not Found</h1>" in response.text
        assert "GET - /missing" in response.text
        assert "Valid Routes" in response.text
        assert "/user/:id" in response.text
        assert "show_user" in response.text
        assert "Environment" in response.text

    async def test_production_hides_routes(self) -> None:
        app = App(AppConfig(environment="production"))
        app.get("/secret-admin", lambda: "")

        async with TestClient(app) as client:
            response = await client.get("/missing")
        assert response.status == 404
        assert "<h1>Not Found</h1>" in response.text
        assert "Valid Routes" not in response.text
        assert "/secret-admin" not in response.text

    async def test_path_is_escaped(self) -> None:
        app = App()

        async with TestClient(app) as client:
            response = await client.get("/<script>")
        assert "<script>" not in response.text
        assert "&lt;script&gt;" in response.text

    async def test_custom_404_handler(self) -> None:
        app = App()

        @app.error(404)
        def missing(request):
            return 404, {"Content-Type": "text/plain"}, f"nothing at {request.path}"

        async with TestClient(app) as client:
            response = await client.get("/gone")
        assert response.status == 404
        assert response.text == "nothing at /gone"
        assert response.content_type == "text/plain"

    async def test_handler_status_defaults_to_error_status(self) -> None:
        app = App()
        app.error(404)(lambda: "custom missing")

        async with TestClient(app) as client:
            response = await client.get("/gone")
        assert response.status == 404
        assert response.text == "custom missing"


class TestErrors:
    async def test_exception_propagates_in_development(self) -> None:
        app = App()

        @app.get("/boom")
        def boom():
            raise ValueError("kaboom")

        async with TestClient(app) as client:
            with pytest.raises(ValueError, match="kaboom"):
                await client.get("/boom")

    async def test_production_returns_generic_500(self) -> None:
        app = App(AppConfig(environment="production"))

        @app.get("/boom")
        def boom():
            raise ValueError("kaboom")

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert response.status == 500
        assert response.text == "Server Error"
        assert "kaboom" not in response.text

    async def test_exception_type_handler(self) -> None:
        app = App()

        @app.get("/boom")
        def boom():
            raise KeyError("thing")

        @app.error(KeyError)
        def handle(request, exc):
            return f"missing {exc}"

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert response.status == 500
        assert response.text == "missing 'thing'"

    async def test_500_handler(self) -> None:
        app = App()
        app.get("/boom", lambda: 1 / 0)
        app.error(500)(lambda: (503, {}, "try later"))

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert response.status == 503
        assert response.text == "try later"

    async def test_http_error_with_headers(self) -> None:
        app = App()

        @app.get("/private")
        def private():
            raise HTTPError(
                status=401, detail="login first", headers=(("WWW-Authenticate", "Basic"),)
            )

        async with TestClient(app) as client:
            response = await client.get("/private")
        assert response.status == 401
        assert response.text == "login first"
        assert ("www-authenticate", "Basic") in response.headers


class TestMounts:
    async def test_scenario_unregistered_subpath(self) -> None:
        sub = App()
        sub.get("/", lambda: "sub root")
        app = App()
        app.mount("/test", sub)

        async with TestClient(app) as client:
            response = await client.get("/test/new")
        assert response.status == 404
        assert "GET - /test/new" in response.text

    async def test_scenario_mount_root(self) -> None:
        sub = App()

        @sub.post("/")
        def create(request: Request):
            return f"{request.path}|{request.original_path}|{request.root_path}"

        app = App()
        app.mount("/mounted", sub)

        async with TestClient(app) as client:
            response = await client.post("/mounted")
        assert response.status == 200
        assert response.text == "/|/mounted|/mounted"

    async def test_path_params_in_mounted_app(self) -> None:
        sub = App()
        sub.get("/users/:id", lambda id: f"admin user {id}")
        app = App()
        app.mount("/admin", sub)

        async with TestClient(app) as client:
            response = await client.get("/admin/users/12")
        assert response.text == "admin user 12"

    async def test_routes_before_mounts(self) -> None:
        sub = App()
        sub.get("/login", lambda: "from mount")
        app = App()
        app.mount("/admin", sub)
        app.get("/admin/login", lambda: "from parent")

        async with TestClient(app) as client:
            response = await client.get("/admin/login")
        assert response.text == "from parent"

    async def test_nested_mounts(self) -> None:
        leaf = App()

        @leaf.get("/list")
        def listing(request: Request):
            return f"{request.root_path}|{request.original_path}"

        middle = App()
        middle.mount("/users", leaf)
        app = App()
        app.mount("/admin", middle)

        async with TestClient(app) as client:
            response = await client.get("/admin/users/list")
        assert response.text == "/admin/users|/admin/users/list"

    async def test_raw_asgi_app(self) -> None:
        seen: dict[str, Any] = {}

        async def legacy(scope, receive, send) -> None:
            seen.update(scope)
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b"legacy"})

        app = App()
        app.mount("/legacy", legacy, auth="none")

        async with TestClient(app) as client:
            response = await client.get("/legacy/a/b")
        assert response.text == "legacy"
        assert seen["path"] == "/a/b"
        assert seen["root_path"] == "/legacy"
        assert seen["perch.original_path"] == "/legacy/a/b"
        assert seen["perch.mount_options"] == {"auth": "none"}

    async def test_route_table_mount(self) -> None:
        def show(request: Request, id: int):
            return f"{id}|{request.path}|{request.root_path}|{request.original_path}"

        table = RouteTable()
        table.add_route("GET", "/", lambda: "api root")
        table.add_route("GET", "/users/:id", show)
        app = App()
        app.mount("/api", table)

        async with TestClient(app) as client:
            root = await client.get("/api")
            user = await client.get("/api/users/7")
            missing = await client.get("/api/nope")
        assert root.status == 200
        assert root.text == "api root"
        assert user.text == "7|/users/7|/api|/api/users/7"
        assert missing.status == 404
        assert "GET - /api/nope" in missing.text

    async def test_route_table_nested_in_route_table(self) -> None:
        leaf = RouteTable()
        leaf.add_route("DELETE", "/:id", lambda id: f"deleted {id}")
        middle = RouteTable()
        middle.mount("/users", leaf)
        app = App()
        app.mount("/admin", middle)

        async with TestClient(app) as client:
            response = await client.delete("/admin/users/3")
        assert response.text == "deleted 3"

    async def test_routes_listing_flattens_mounted_app(self) -> None:
        sub = App()
        sub.get("/", lambda: "")
        sub.delete("/users/:id", lambda id: "")
        app = App()
        app.get("/", lambda: "")
        app.mount("/admin", sub)

        assert [(r.method, r.path) for r in app.routes] == [
            ("GET", "/"),
            ("GET", "/admin/"),
            ("DELETE", "/admin/users/:id"),
        ]
        assert app.path_for("admin_users_path", 3) == "/admin/users/3"


class TestMiddleware:
    async def test_wraps_response(self) -> None:
        app = App()
        app.get("/", lambda: "ok")

        async def tag(request, next):
            response = await next(request)
            return response.with_header("X-Tag", "1")

        app.add_middleware(tag)

        async with TestClient(app) as client:
            response = await client.get("/")
        assert ("x-tag", "1") in response.headers

    async def test_order_first_added_is_outermost(self) -> None:
        app = App()
        calls: list[str] = []
        app.get("/", lambda: "ok")

        def make(name: str):
            async def mw(request, next):
                calls.append(f"{name}:before")
                response = await next(request)
                calls.append(f"{name}:after")
                return response

            return mw

        app.add_middleware(make("outer"))
        app.add_middleware(make("inner"))

        async with TestClient(app) as client:
            await client.get("/")
        assert calls == ["outer:before", "inner:before", "inner:after", "outer:after"]

    async def test_wraps_mounted_app(self) -> None:
        sub = App()
        sub.get("/", lambda: "sub")
        app = App()
        app.mount("/sub", sub)

        async def tag(request, next):
            return (await next(request)).with_header("X-Wrapped", "yes")

        app.add_middleware(tag)

        async with TestClient(app) as client:
            response = await client.get("/sub")
        assert response.text == "sub"
        assert ("x-wrapped", "yes") in response.headers

    async def test_body_read_by_middleware_reaches_mounted_app(self) -> None:
        sub = App()

        @sub.post("/")
        async def echo(request):
            return await request.text()

        app = App()
        app.mount("/echo", sub)

        async def peek(request, next):
            await request.body()
            return await next(request)

        app.add_middleware(peek)

        async with TestClient(app) as client:
            response = await client.post("/echo", body=b"payload")
        assert response.text == "payload"

    async def test_short_circuit(self) -> None:
        app = App()
        app.get("/", lambda: "ok")

        async def deny(request, next):
            return Response("no", status=403)

        app.add_middleware(deny)

        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 403

    async def test_middleware_sees_not_found(self) -> None:
        app = App()
        seen: list[int] = []

        async def record(request, next):
            try:
                return await next(request)
            except HTTPError as exc:
                seen.append(exc.status)
                raise

        app.add_middleware(record)

        async with TestClient(app) as client:
            response = await client.get("/nope")
        assert response.status == 404
        assert seen == [404]


class TestLifespan:
    async def test_startup_and_shutdown(self) -> None:
        app = App()
        events: list[str] = []

        @app.on_startup
        async def start():
            events.append("start")

        @app.on_shutdown
        def stop():
            events.append("stop")

        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[str] = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert events == ["start", "stop"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
        assert app.routes.frozen

    async def test_failing_startup(self) -> None:
        app = App()

        @app.on_startup
        def broken():
            raise RuntimeError("no database")

        sent: list[dict[str, Any]] = []

        async def receive():
            return {"type": "lifespan.startup"}

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert sent == [{"type": "lifespan.startup.failed", "message": "no database"}]

    async def test_test_client_runs_hooks(self) -> None:
        app = App()
        events: list[str] = []
        app.on_startup(lambda: events.append("start"))
        app.on_shutdown(lambda: events.append("stop"))

        async with TestClient(app):
            assert events == ["start"]
        assert events == ["start", "stop"]
