"""
Calculation API endpoint.

Accepts named inputs, runs the requested workbook macros and returns the
requested output cells.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from lumpsum.calculations.dataset import load_dataset
from lumpsum.calculations.goal_seek import GoalSeekStrategy, build_strategy
from lumpsum.calculations.workbook import LumpSumWorkbook
from lumpsum.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


class ActionParameters(BaseModel):
    """Parameters of a workbook action."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None


class Action(BaseModel):
    """A pre- or post-formula action, e.g. {"type": "macro", "parameters": {"name": ...}}."""

    type: str
    parameters: ActionParameters = Field(default_factory=ActionParameters)


class CalculationRequest(BaseModel):
    """Named inputs per sheet and the cells to read back per sheet."""

    model_config = ConfigDict(populate_by_name=True)

    input_cells: Dict[str, Dict[str, Any]] = Field(default_factory=dict, alias="inputCells")
    output_cells: Dict[str, List[str]] = Field(default_factory=dict, alias="outputCells")
    pre_formulas_actions: List[Action] = Field(
        default_factory=list, alias="preFormulasActions"
    )
    post_formulas_actions: List[Action] = Field(
        default_factory=list, alias="postFormulasActions"
    )


def strategy_from_settings(settings: Settings) -> GoalSeekStrategy:
    """Goal seek strategy configured for this deployment."""
    return build_strategy(
        settings.goal_seek_strategy,
        sample_step=settings.goal_seek_sample_step,
        iterate=settings.goal_seek_iterate,
        tolerance=settings.goal_seek_tolerance,
        max_iterations=settings.goal_seek_max_iterations,
    )


@router.post("")
async def calculate(request: CalculationRequest):
    """Run one workbook calculation; each request gets its own workbook."""
    try:
        settings = get_settings()
        workbook = LumpSumWorkbook(
            input_cells=request.input_cells,
            dataset=load_dataset(settings.dataset_path),
            strategy=strategy_from_settings(settings),
        )
        results = workbook.calculate_output_cells(
            request.output_cells,
            [action.model_dump() for action in request.pre_formulas_actions],
            [action.model_dump() for action in request.post_formulas_actions],
        )
        return jsonable_encoder(results)
    except Exception as e:
        logger.exception("Calculation failed")
        return JSONResponse(
            status_code=500, content={"status": "error", "message": str(e)}
        )
