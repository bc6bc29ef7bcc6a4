from typing import Optional

from fastapi import FastAPI, HTTPException, Response, status
from fastapi.middleware.cors import CORSMiddleware

from categorize import CategorySuggester

from .config import Settings
from .errors import (
    EntityNotFoundError,
    LedgerError,
    ReferentialInconsistency,
    SettlementCategoryUnavailable,
    StoreFailure,
    ValidationError,
)
from .models import (
    BalancesResponse,
    BulkDeleteRequest,
    Category,
    CategoryListResponse,
    CategoryRequest,
    CreateUserRequest,
    Event,
    EventRequest,
    Expense,
    ExpenseDraft,
    SettlementRequest,
    SuggestCategoryRequest,
    SuggestCategoryResponse,
    UpdateExpenseRequest,
    UpdateUserRequest,
    User,
)
from .reports import search_expenses, spending_by_category
from .service import LedgerService
from .storage import InMemoryStorage

STATUS_BY_ERROR = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    EntityNotFoundError: status.HTTP_404_NOT_FOUND,
    ReferentialInconsistency: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SettlementCategoryUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    StoreFailure: status.HTTP_502_BAD_GATEWAY,
}


def _http_error(e: LedgerError) -> HTTPException:
    code = next(
        (code for kind, code in STATUS_BY_ERROR.items() if isinstance(e, kind)),
        status.HTTP_400_BAD_REQUEST,
    )
    return HTTPException(status_code=code, detail=str(e))


def create_app(
    service: Optional[LedgerService] = None,
    suggester: Optional[CategorySuggester] = None,
    settings: Optional[Settings] = None,
    root_path: str = "",
) -> FastAPI:
    settings = settings or Settings.from_env()
    service = service or LedgerService(InMemoryStorage(seed=settings.seed_demo_data))
    suggester = suggester or CategorySuggester.from_settings(settings)

    app = FastAPI(
        title="Shared Expense Ledger API",
        description="Shared expenses, balances and settlements for a group of users",
        version="1.0.0",
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "splitledger"}

    # Users

    @app.get("/users", response_model=list[User], response_model_exclude_none=True, tags=["Users"])
    def list_users() -> list[User]:
        try:
            return service.list_users()
        except LedgerError as e:
            raise _http_error(e)

    @app.post("/users", response_model=User, response_model_exclude_none=True, status_code=status.HTTP_201_CREATED, tags=["Users"])
    def add_user(request: CreateUserRequest) -> User:
        try:
            return service.add_user(request.name, request.avatar_url, request.email, request.id)
        except LedgerError as e:
            raise _http_error(e)

    @app.put("/users/{user_id}", response_model=User, response_model_exclude_none=True, tags=["Users"])
    def update_user(user_id: str, request: UpdateUserRequest) -> User:
        try:
            return service.update_user(user_id, request.name, request.avatar_url)
        except LedgerError as e:
            raise _http_error(e)

    # Expenses

    @app.get("/expenses", response_model=list[Expense], response_model_exclude_none=True, tags=["Expenses"])
    def list_expenses(
        event_id: Optional[str] = None,
        user_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Expense]:
        try:
            expenses = service.list_expenses(event_id=event_id, user_id=user_id)
            if search:
                expenses = search_expenses(expenses, service.list_users(), search)
            return expenses
        except LedgerError as e:
            raise _http_error(e)

    @app.post("/expenses", response_model=Expense, response_model_exclude_none=True, status_code=status.HTTP_201_CREATED, tags=["Expenses"])
    def add_expense(draft: ExpenseDraft) -> Expense:
        try:
            return service.add_expense(draft)
        except LedgerError as e:
            raise _http_error(e)

    @app.patch("/expenses/{expense_id}", response_model=Expense, response_model_exclude_none=True, tags=["Expenses"])
    def update_expense(expense_id: str, request: UpdateExpenseRequest) -> Expense:
        try:
            return service.update_expense(expense_id, request.to_patch())
        except LedgerError as e:
            raise _http_error(e)

    @app.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Expenses"])
    def delete_expense(expense_id: str) -> Response:
        try:
            service.delete_expense(expense_id)
        except LedgerError as e:
            raise _http_error(e)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/expenses/bulk-delete", tags=["Expenses"])
    def delete_expenses(request: BulkDeleteRequest):
        try:
            return {"deleted": service.delete_expenses(request.expense_ids)}
        except LedgerError as e:
            raise _http_error(e)

    # Events

    @app.get("/events", response_model=list[Event], response_model_exclude_none=True, tags=["Events"])
    def list_events() -> list[Event]:
        try:
            return service.list_events()
        except LedgerError as e:
            raise _http_error(e)

    @app.post("/events", response_model=Event, response_model_exclude_none=True, status_code=status.HTTP_201_CREATED, tags=["Events"])
    def add_event(request: EventRequest) -> Event:
        try:
            return service.add_event(request.name, request.member_ids)
        except LedgerError as e:
            raise _http_error(e)

    @app.put("/events/{event_id}", response_model=Event, response_model_exclude_none=True, tags=["Events"])
    def update_event(event_id: str, request: EventRequest) -> Event:
        try:
            return service.update_event(event_id, request.name, request.member_ids)
        except LedgerError as e:
            raise _http_error(e)

    @app.delete("/events/{event_id}", tags=["Events"])
    def delete_event(event_id: str):
        try:
            return {"detachedExpenses": service.delete_event(event_id)}
        except LedgerError as e:
            raise _http_error(e)

    # Categories

    @app.get("/categories", response_model=CategoryListResponse, tags=["Categories"])
    def list_categories() -> CategoryListResponse:
        try:
            return CategoryListResponse(categories=[c.name for c in service.list_categories()])
        except LedgerError as e:
            raise _http_error(e)

    @app.post("/categories", response_model=Category, status_code=status.HTTP_201_CREATED, tags=["Categories"])
    def add_category(request: CategoryRequest) -> Category:
        try:
            return service.add_category(request.name)
        except LedgerError as e:
            raise _http_error(e)

    @app.put("/categories/{name}", response_model=Category, tags=["Categories"])
    def rename_category(name: str, request: CategoryRequest) -> Category:
        try:
            return service.rename_category(name, request.name)
        except LedgerError as e:
            raise _http_error(e)

    @app.delete("/categories/{name}", tags=["Categories"])
    def remove_category(name: str):
        try:
            return {"clearedExpenses": service.remove_category(name)}
        except LedgerError as e:
            raise _http_error(e)

    @app.post("/categories/suggest", response_model=SuggestCategoryResponse, tags=["Categories"])
    def suggest_categories(request: SuggestCategoryRequest) -> SuggestCategoryResponse:
        try:
            known = [c.name for c in service.list_categories()]
        except LedgerError as e:
            raise _http_error(e)
        return SuggestCategoryResponse(category_suggestions=suggester.suggest(request.description, known))

    # Balances and settlements

    @app.get("/balances", response_model=BalancesResponse, tags=["Balances"])
    def get_balances(current_user_id: Optional[str] = None) -> BalancesResponse:
        try:
            debts = service.get_balances(current_user_id)
        except LedgerError as e:
            raise _http_error(e)
        return BalancesResponse(debts=debts, current_user_id=current_user_id)

    @app.post("/settlements", response_model=Expense, response_model_exclude_none=True, status_code=status.HTTP_201_CREATED, tags=["Balances"])
    def record_settlement(request: SettlementRequest) -> Expense:
        try:
            return service.record_settlement(request.payer_id, request.recipient_id, request.amount)
        except LedgerError as e:
            raise _http_error(e)

    @app.get("/reports/categories", tags=["Reports"])
    def category_report(event_id: Optional[str] = None):
        try:
            expenses = service.list_expenses(event_id=event_id)
        except LedgerError as e:
            raise _http_error(e)
        return {name: str(total) for name, total in spending_by_category(expenses).items()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from .config import configure_logging

    configure_logging(Settings.from_env())
    uvicorn.run(app, host="0.0.0.0", port=8000)
