import logging
import tomllib
from datetime import date
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from database import session_scope
from models import TransactionType, User
from schemas import (
    BillIn,
    BillOut,
    BillTemplateIn,
    BillTemplateOut,
    CategoryBreakdownOut,
    CategoryIn,
    CategoryOut,
    DeletedOut,
    FinancialAdviceOut,
    LoginIn,
    MonthOverviewOut,
    RegisterIn,
    SummaryOut,
    TokenOut,
    TransactionIn,
    TransactionOut,
    TransactionPatch,
    UserOut,
)
from security import issue_access_token, read_access_token
from services import (
    AdviceService,
    BillService,
    BillTemplateService,
    CategoryService,
    ConflictError,
    NotFoundError,
    OverviewService,
    StorageError,
    TransactionService,
    UserService,
    ValidationError,
)

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Household Finance")


def _load_app_version() -> str:
    try:
        with open(Path(__file__).with_name("pyproject.toml"), "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"


APP_VERSION = _load_app_version()


def get_db():
    with session_scope() as db:
        yield db


bearer_scheme = HTTPBearer(auto_error=False)


def current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> int:
    user_id = read_access_token(credentials.credentials) if credentials else None
    if user_id is None or db.get(User, user_id) is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


@app.exception_handler(ValidationError)
def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400, content={"detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(NotFoundError)
def handle_not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
def handle_conflict(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StorageError)
@app.exception_handler(SQLAlchemyError)
def handle_storage_error(request: Request, exc: Exception):
    logger.error(f"storage_error: path={request.url.path} error={exc!r}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.post("/auth/register", response_model=TokenOut, status_code=201)
def register(data: RegisterIn, db: Session = Depends(get_db)):
    user = UserService(db).register(data)
    return {"token": issue_access_token(user.id), "user": UserOut.model_validate(user)}


@app.post("/auth/login", response_model=TokenOut)
def login(data: LoginIn, db: Session = Depends(get_db)):
    user = UserService(db).authenticate(data.email, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid e-mail or password")
    logger.info(f"user_login: user_id={user.id}")
    return {"token": issue_access_token(user.id), "user": UserOut.model_validate(user)}


@app.get("/categories", response_model=list[CategoryOut])
def list_categories(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    return CategoryService(db, user_id).list_all()


@app.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(
    data: CategoryIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return CategoryService(db, user_id).create(data)


@app.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    type: Optional[TransactionType] = None,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).list(start, end, type)


@app.post("/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    data: TransactionIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).create(data)


@app.delete("/transactions", response_model=DeletedOut)
def delete_transactions_in_period(
    start: date = Query(..., alias="from"),
    end: date = Query(..., alias="to"),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    deleted = TransactionService(db, user_id).delete_in_period(start, end)
    return {"deleted": deleted}


@app.get("/transactions/summary", response_model=SummaryOut)
def transactions_summary(
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).summary(start, end)


@app.get("/transactions/summary/by-category", response_model=CategoryBreakdownOut)
def transactions_summary_by_category(
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).summary_by_category(start, end)


@app.patch("/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    data: TransactionPatch,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionService(db, user_id).update(transaction_id, data)


@app.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    TransactionService(db, user_id).delete(transaction_id)
    return Response(status_code=204)


@app.get("/bills", response_model=list[BillOut])
def list_bills(
    status: Optional[str] = None,
    start: Optional[date] = Query(None, alias="from"),
    end: Optional[date] = Query(None, alias="to"),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BillService(db, user_id).list(status, start, end)


@app.post("/bills", response_model=BillOut, status_code=201)
def create_bill(
    data: BillIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BillService(db, user_id).create(data)


@app.post("/bills/generate/{year_month}", response_model=list[BillOut])
def generate_bills(
    year_month: str,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BillTemplateService(db, user_id).generate_for_month(year_month)


@app.patch("/bills/{bill_id}", response_model=BillOut)
def update_bill(
    bill_id: int,
    data: BillIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BillService(db, user_id).update(bill_id, data)


@app.delete("/bills/{bill_id}", status_code=204)
def delete_bill(
    bill_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    BillService(db, user_id).delete(bill_id)
    return Response(status_code=204)


@app.post("/bills/{bill_id}/pay", response_model=BillOut)
def pay_bill(
    bill_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BillService(db, user_id).pay(bill_id)


@app.get("/bill-templates", response_model=list[BillTemplateOut])
def list_bill_templates(
    user_id: int = Depends(current_user_id), db: Session = Depends(get_db)
):
    return BillTemplateService(db, user_id).list_all()


@app.post("/bill-templates", response_model=BillTemplateOut, status_code=201)
def create_bill_template(
    data: BillTemplateIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BillTemplateService(db, user_id).create(data)


@app.patch("/bill-templates/{template_id}", response_model=BillTemplateOut)
def update_bill_template(
    template_id: int,
    data: BillTemplateIn,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return BillTemplateService(db, user_id).update(template_id, data)


@app.delete("/bill-templates/{template_id}", status_code=204)
def delete_bill_template(
    template_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    BillTemplateService(db, user_id).delete(template_id)
    return Response(status_code=204)


@app.get("/months/{year_month}/overview", response_model=MonthOverviewOut)
def month_overview(
    year_month: str,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return OverviewService(db, user_id).month_overview(year_month)


@app.get("/advice/financial", response_model=FinancialAdviceOut)
def financial_advice(
    ym: Optional[str] = None,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return AdviceService(db, user_id).financial_advice(ym)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
