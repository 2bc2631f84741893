import logging
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.database import get_db, reflect_table
from backend.models.blood import BloodResult
from backend.services.trend_analyzer import daily_averages, to_float

router = APIRouter(prefix="/api", tags=["analytes"])
logger = logging.getLogger(__name__)

MATRIX_TABLE = "analyte_matrix"
MATRIX_DATE_PREFIX = "d_"


@router.get("/analytes")
def list_analytes(db: Session = Depends(get_db)):
    rows = db.query(BloodResult.analyte).filter(BloodResult.analyte.is_not(None)).all()
    names = {name.strip() for (name,) in rows if name and name.strip()}
    analytes = sorted(names, key=lambda name: (name.casefold(), name))
    logger.info("Listed %d analytes", len(analytes))
    return {"analytes": analytes}


@router.get("/explore")
def explore(
    analytes: str = Query(default=""),
    date_from: date | None = Query(default=None, alias="from"),
    date_to: date | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
):
    wanted = [name.strip() for name in analytes.split(",") if name.strip()]
    if not wanted:
        raise HTTPException(status_code=400, detail="No analytes selected")

    query = (
        db.query(BloodResult.analyte, BloodResult.collected_at, BloodResult.value_numeric)
        .filter(BloodResult.value_numeric.is_not(None))
        .order_by(BloodResult.collected_at.asc(), BloodResult.id.asc())
    )
    if date_from:
        query = query.filter(BloodResult.collected_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(BloodResult.collected_at <= datetime.combine(date_to, time.max))

    wanted_lower = {name.lower() for name in wanted}
    observations = [
        (analyte, collected_at.date().isoformat(), float(value))
        for analyte, collected_at, value in query.all()
        if analyte and collected_at and analyte.lower() in wanted_lower
    ]
    rows = daily_averages(observations)
    logger.info("Explore %s returned %d rows", wanted, len(rows))
    return {"rows": rows}


@router.get("/pivot")
def pivot(db: Session = Depends(get_db)):
    table = reflect_table(MATRIX_TABLE, db.get_bind())
    records = [dict(row) for row in db.execute(select(table).order_by(table.c.analyte)).mappings().all()]

    date_columns = {
        column.name: column.name[len(MATRIX_DATE_PREFIX):].replace("_", "-")
        for column in table.columns
        if column.name.startswith(MATRIX_DATE_PREFIX)
    }
    dates = sorted(set(date_columns.values()))
    column_for_date = {iso: name for name, iso in date_columns.items()}

    rows = [
        {
            "analyte": record.get("analyte"),
            "units": record.get("units"),
            "ref_low": to_float(record.get("ref_low")),
            "ref_high": to_float(record.get("ref_high")),
            "cols": [record.get(column_for_date[iso]) for iso in dates],
        }
        for record in records
    ]
    return {"dates": dates, "rows": rows}
