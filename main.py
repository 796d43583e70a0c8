import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from auth import (authenticate, get_default_owner, issue_token, register_user,
                  user_from_authorization)
from calculator import summarize_loans
from config import Config, get_config
from errors import InternalError, LoanTrackerError, ValidationError
from models import Base, User
from schemas import LoanCreate, LoanOut, LoanTotals, LoanUpdate, UserCreate, UserLogin, UserOut
from store import LoanStore

config = get_config()
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Loan Tracker")

connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(config.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


Base.metadata.create_all(bind=engine)


def get_current_owner(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
) -> User:
    if config.anonymous:
        return get_default_owner(db, config)
    return user_from_authorization(db, authorization)


def get_loan_store(db: Session = Depends(get_db)) -> LoanStore:
    return LoanStore(db)


@app.exception_handler(LoanTrackerError)
async def loan_tracker_error_handler(request: Request, exc: LoanTrackerError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    details = []
    invalid_path = False
    for error in exc.errors():
        location = [str(part) for part in error["loc"]]
        if location and location[0] == "path":
            invalid_path = True
        field = ".".join(location[1:]) or location[0]
        details.append({"field": field, "message": error["msg"]})

    message = "Invalid loan ID" if invalid_path else "Validation failed"
    error = ValidationError(message, details=details)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.post("/auth/register", status_code=201)
async def register(
    user: UserCreate,
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
):
    db_user = register_user(db, user)
    token = issue_token(db, db_user, config)
    return {"user": UserOut.model_validate(db_user).to_json(), "token": token}


@app.post("/auth/login")
async def login(
    credentials: UserLogin,
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
):
    db_user = authenticate(db, credentials.email, credentials.password)
    token = issue_token(db, db_user, config)
    return {"user": UserOut.model_validate(db_user).to_json(), "token": token}


@app.get("/auth/profile")
async def profile(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    db_user = user_from_authorization(db, authorization)
    return {"user": UserOut.model_validate(db_user).to_json()}


@app.post("/loans", status_code=201)
async def create_loan(
    loan: LoanCreate,
    owner: User = Depends(get_current_owner),
    store: LoanStore = Depends(get_loan_store),
):
    db_loan = store.insert(
        owner_id=owner.id,
        name=loan.loan_name,
        amount=loan.amount,
        duration=loan.duration,
        rate=loan.interest_rate,
        paid_amount=loan.paid_amount,
    )
    return {"loan": LoanOut.model_validate(db_loan).to_json()}


@app.get("/loans")
async def list_loans(
    owner: User = Depends(get_current_owner),
    store: LoanStore = Depends(get_loan_store),
):
    loans = store.list_by_owner(owner.id)
    return {"loans": [LoanOut.model_validate(loan).to_json() for loan in loans]}


@app.get("/loans/stats")
async def loan_stats(
    owner: User = Depends(get_current_owner),
    store: LoanStore = Depends(get_loan_store),
):
    totals: LoanTotals = summarize_loans(store.list_by_owner(owner.id))
    return {"stats": totals.to_json()}


@app.get("/loans/{loan_id}")
async def get_loan(
    loan_id: int,
    owner: User = Depends(get_current_owner),
    store: LoanStore = Depends(get_loan_store),
):
    db_loan = store.find_owned(loan_id, owner.id)
    return {"loan": LoanOut.model_validate(db_loan).to_json()}


@app.put("/loans/{loan_id}")
async def update_loan(
    loan_id: int,
    loan: LoanUpdate,
    owner: User = Depends(get_current_owner),
    store: LoanStore = Depends(get_loan_store),
):
    db_loan = store.update(loan_id, owner.id, loan.model_dump(exclude_none=True))
    return {"loan": LoanOut.model_validate(db_loan).to_json()}


@app.delete("/loans/{loan_id}")
async def delete_loan(
    loan_id: int,
    owner: User = Depends(get_current_owner),
    store: LoanStore = Depends(get_loan_store),
):
    store.delete_by_id(loan_id, owner.id)
    return {"message": "Loan deleted successfully"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
