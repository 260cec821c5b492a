import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from aggregator import DEFAULT_PAGE_SIZE, DEFAULT_PERIOD, serialize_expense
from auth import SESSION_COOKIE, issue_session_token, read_session_token
from config import get_settings
from database import Database
from models import Category, User
from schemas import (
    CategoryIn,
    CategoryReorderIn,
    ExpenseIn,
    LoginIn,
    RegisterIn,
    UserSettingsIn,
)
from services import (
    AuthenticationError,
    CategoryService,
    ExpenseService,
    NotFoundError,
    StatsService,
    UserService,
)
from storage import SQLExpenseStore, category_record, expense_record


logger = logging.getLogger(__name__)


def category_to_dict(category: Category) -> dict[str, object]:
    return {
        "id": category.id,
        "userId": category.user_id,
        "name": category.name,
        "color": category.color,
        "order": category.order,
        "createdAt": category.created_at.isoformat(),
    }


def settings_to_dict(user: User) -> dict[str, object]:
    return {
        "firstName": user.first_name,
        "lastName": user.last_name,
        "currency": user.currency,
        "currencySymbol": user.currency_symbol,
        "timezone": user.timezone,
        "country": user.country,
    }


def expense_to_dict(expense) -> dict[str, object]:
    lookup = {}
    if expense.category is not None:
        record = category_record(expense.category)
        lookup[record.id] = record
    return serialize_expense(expense_record(expense), lookup)


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def current_user_id(request: Request) -> int:
    session = read_session_token(request.cookies.get(SESSION_COOKIE))
    if not session:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return int(session["user_id"])


def int_param(request: Request, name: str, default: Optional[int]) -> Optional[int]:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def create_app(database: Optional[Database] = None) -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="Expense Tracker")
    app.state.database = database or Database(settings.database_url)

    @app.on_event("startup")
    def startup_event():
        app.state.database.open()

    @app.on_event("shutdown")
    def shutdown_event():
        app.state.database.close()

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = [str(err.get("msg", "")) for err in exc.errors()]
        return JSONResponse(
            {"error": "Invalid request", "details": details}, status_code=400
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"request_failed: path={request.url.path}")
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.get("/api/health")
    def health(request: Request):
        ok = request.app.state.database.ping()
        return {"status": "ok" if ok else "degraded"}

    @app.post("/api/auth/register", status_code=201)
    def register(payload: RegisterIn, db: Session = Depends(get_db)):
        try:
            user = UserService(db).register(payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"message": "User created successfully", "userId": user.id}

    @app.post("/api/auth/login")
    def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
        try:
            user = UserService(db).authenticate(payload.email, payload.password)
        except AuthenticationError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        response.set_cookie(
            SESSION_COOKIE,
            issue_session_token(user.id, user.email),
            max_age=settings.session_max_age_secs,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="strict",
        )
        logger.info(f"user_login: user_id={user.id}")
        return {
            "message": "Login successful",
            "user": {"id": user.id, "name": user.full_name, "email": user.email},
        }

    @app.post("/api/auth/logout")
    def logout(response: Response):
        response.delete_cookie(
            SESSION_COOKIE,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="strict",
        )
        return {"message": "Logout successful"}

    @app.get("/api/user/settings")
    def get_user_settings(
        user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
    ):
        try:
            user = UserService(db).get(user_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return settings_to_dict(user)

    @app.put("/api/user/settings")
    def update_user_settings(
        payload: UserSettingsIn,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        try:
            user = UserService(db).update_settings(user_id, payload)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return settings_to_dict(user)

    @app.get("/api/categories")
    def list_categories(
        user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
    ):
        return [category_to_dict(c) for c in CategoryService(db, user_id).list_all()]

    @app.post("/api/categories", status_code=201)
    def create_category(
        payload: CategoryIn,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        try:
            category = CategoryService(db, user_id).create(payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return category_to_dict(category)

    @app.put("/api/categories/reorder")
    def reorder_categories(
        payload: CategoryReorderIn,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        count = CategoryService(db, user_id).reorder(payload.category_orders)
        return {"message": "Category order updated successfully", "updatedCount": count}

    @app.post("/api/categories/update-colors")
    def update_category_colors(
        user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
    ):
        categories = CategoryService(db, user_id).reset_colors()
        return {
            "message": "Categories updated successfully",
            "updatedCount": len(categories),
            "categories": [category_to_dict(c) for c in categories],
        }

    @app.post("/api/categories/normalize-order")
    def normalize_category_order(
        user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
    ):
        changed = CategoryService(db, user_id).normalize_order()
        return {"message": "Category order normalized", "updated": changed}

    @app.delete("/api/categories/{category_id}")
    def delete_category(
        category_id: int,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        try:
            removed = CategoryService(db, user_id).delete(category_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {
            "message": "Category and all associated expenses deleted successfully",
            "expensesDeleted": removed,
        }

    @app.get("/api/expenses")
    def list_expenses(
        request: Request,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        category_id = int_param(request, "categoryId", None)
        service = ExpenseService(db, user_id, settings.default_timezone)
        return [expense_to_dict(e) for e in service.list(category_id)]

    @app.post("/api/expenses", status_code=201)
    def create_expense(
        payload: ExpenseIn,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        service = ExpenseService(db, user_id, settings.default_timezone)
        try:
            expense = service.create(payload)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return expense_to_dict(expense)

    @app.get("/api/expenses/stats")
    def expense_stats(
        request: Request,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        stats = StatsService(SQLExpenseStore(db), user_id, settings.default_timezone)
        return stats.summary(
            period=request.query_params.get("period") or DEFAULT_PERIOD,
            reference_date=request.query_params.get("date"),
            category_id=int_param(request, "categoryId", None),
            page=int_param(request, "page", 1),
            page_size=int_param(request, "limit", DEFAULT_PAGE_SIZE),
        )

    @app.delete("/api/expenses/{expense_id}")
    def delete_expense(
        expense_id: int,
        user_id: int = Depends(current_user_id),
        db: Session = Depends(get_db),
    ):
        try:
            ExpenseService(db, user_id).delete(expense_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"message": "Expense deleted successfully"}

    return app


app = create_app()


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
