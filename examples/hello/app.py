"""Hello World — routes, a mounted admin app, and reverse routing.

Demonstrates path parameters, return-value coercion, mounting one app
under another, middleware that wraps mounted apps, and path generation.

Serve with any ASGI server:
    uvicorn app:app
"""

from perch import App, Request, Response

admin = App()


@admin.get("/")
def dashboard(request: Request):
    return f"Admin dashboard (mounted at {request.root_path})"


@admin.get("/users/:id")
def admin_user(id: int):
    return {"id": id, "admin": True}


app = App()


@app.get("/")
def index():
    return "Hello, World!"


@app.get("/greet/:name")
def greet(name: str):
    return f"Hello, {name}!"


@app.get("/user/:id/settings")
def settings(id: int):
    return f"Settings for user {id}"


@app.get("/links")
def links():
    return {
        "settings": app.path_for("user_settings_path", 42),
        "admin_user": app.url_for("http://localhost:8000", "admin_users_path", 7),
    }


@app.post("/user")
def create_user():
    return 201, {"Location": app.path_for("user_settings_path", 1)}, "Created"


app.get("/hola", lambda: "Hola")
app.mount("/admin", admin)


async def powered_by(request: Request, next):
    response = await next(request)
    return response.with_header("X-Powered-By", "perch")


app.add_middleware(powered_by)


@app.error(404)
def not_found(request: Request):
    return Response(f"Nothing at {request.original_path}").with_status(404)
