from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

router = APIRouter()

INDEX_HTML = Path(__file__).resolve().parents[1] / "static" / "index.html"


@router.get("/", include_in_schema=False)
@router.get("/index.html", include_in_schema=False)
async def index():
    return FileResponse(INDEX_HTML, media_type="text/html")
