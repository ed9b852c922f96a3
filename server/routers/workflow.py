"""Workflow execution routes."""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from core.container import container
from core.logging import get_logger
from models.workflow import WorkflowGraphRequest, ExecuteWorkflowRequest
from services.execution.errors import GraphError
from services.workflow import WorkflowService

logger = get_logger(__name__)
router = APIRouter(prefix="/api/workflows", tags=["workflows"])


def get_workflow_service() -> WorkflowService:
    return container.workflow_service()


@router.post("/validate")
async def validate_workflow(
    request: WorkflowGraphRequest,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Check graph structure without running it."""
    try:
        validated = workflow_service.validate(request.to_graph())
    except GraphError as e:
        return {"valid": False, "error": e.message, "code": e.code}

    return {
        "valid": True,
        "trigger": validated.trigger_id,
        "order": list(validated.topological_order),
    }


@router.post("/execute", status_code=status.HTTP_202_ACCEPTED)
async def execute_workflow(
    request: ExecuteWorkflowRequest,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Validate synchronously, then run the workflow in the background."""
    try:
        execution_id = await workflow_service.start_execution(
            request.to_graph(),
            trigger_input=request.trigger_input,
            workflow_id=request.workflow_id,
        )
    except GraphError as e:
        logger.warning("Rejected invalid workflow", code=e.code, error=e.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": e.message, "code": e.code},
        )

    return {"executionId": execution_id, "status": "running"}


@router.get("/executions/{execution_id}/status")
async def get_execution_status(
    execution_id: str,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Overall status plus per-node statuses."""
    result = await workflow_service.get_status(execution_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Execution not found")

    return {
        "status": result["status"],
        "nodeStatuses": [
            {"nodeId": entry["node_id"], "status": entry["status"]}
            for entry in result["node_statuses"]
        ],
    }


@router.get("/executions/{execution_id}/logs")
async def get_execution_logs(
    execution_id: str,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Execution row and per-node log rows."""
    result = await workflow_service.get_logs(execution_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return result


@router.post("/executions/{execution_id}/cancel")
async def cancel_execution(
    execution_id: str,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Signal cancellation of a running execution."""
    cancelled = await workflow_service.cancel_execution(execution_id)
    if not cancelled:
        raise HTTPException(status_code=404, detail="Execution not running")
    return {"success": True, "executionId": execution_id}
