"""
Workflow API Routes.

REST endpoints over refresh, entry management and checker registration.
Workflow endpoints are prefixed with /workflows; checker registration,
which applies to tools and workflows alike, lives under /entries.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..db.store import EntryStore
from ..dependencies import (
    get_current_user_id,
    get_index_notifier,
    get_language_handlers,
    get_source_code_repo_factory,
)
from ..languages import LanguageHandlerRegistry
from ..schemas import (
    CheckerWorkflowRequest,
    EntryUpdateRequest,
    ManualRegisterRequest,
    PublishRequest,
    ResetPathsRequest,
    TestParameterFilesRequest,
    VerifyRequest,
    VersionUpdate,
)
from ..search import IndexNotifier
from ..sourcecode import SourceCodeRepoFactory
from .checker import CheckerWorkflowService
from .entries import EntryService
from .enums import FileType, RenderMode
from .refresh import RefreshOrchestrator

router = APIRouter(prefix="/workflows", tags=["Workflows"])
entries_router = APIRouter(prefix="/entries", tags=["Entries"])


def get_entry_service(
    db: Session = Depends(get_db),
    notifier: IndexNotifier = Depends(get_index_notifier),
    factory: SourceCodeRepoFactory = Depends(get_source_code_repo_factory),
    handlers: LanguageHandlerRegistry = Depends(get_language_handlers),
) -> EntryService:
    return EntryService(EntryStore(db), notifier, factory, handlers)


def get_refresh_orchestrator(
    db: Session = Depends(get_db),
    notifier: IndexNotifier = Depends(get_index_notifier),
    factory: SourceCodeRepoFactory = Depends(get_source_code_repo_factory),
) -> RefreshOrchestrator:
    return RefreshOrchestrator(EntryStore(db), factory, notifier)


# =============================================================================
# Listing and Lookup
# =============================================================================


@router.get("")
async def list_workflows(
    published: bool = False,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: EntryService = Depends(get_entry_service),
) -> List[Dict[str, Any]]:
    """List workflows; checker workflows are not listed."""
    entries = service.list_entries(limit=limit, offset=offset, published_only=published)
    return [e.to_dict() for e in entries]


@router.get("/{entry_id}")
async def get_workflow(
    entry_id: int,
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    return service.get(entry_id).to_dict()


# =============================================================================
# Refresh
# =============================================================================


@router.post("/refresh")
async def refresh_all(
    organization: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    orchestrator: RefreshOrchestrator = Depends(get_refresh_orchestrator),
) -> Dict[str, Any]:
    """Refresh every repository the caller can see, optionally one organization only."""
    report = orchestrator.refresh_all(user_id, organization=organization)
    return {"status": "success", "report": report.to_dict()}


@router.post("/{entry_id}/refresh")
async def refresh_workflow(
    entry_id: int,
    user_id: int = Depends(get_current_user_id),
    orchestrator: RefreshOrchestrator = Depends(get_refresh_orchestrator),
) -> Dict[str, Any]:
    return orchestrator.refresh_one(user_id, entry_id).to_dict()


# =============================================================================
# Lifecycle
# =============================================================================


@router.post("/manualRegister", status_code=201)
async def manual_register(
    request: ManualRegisterRequest,
    user_id: int = Depends(get_current_user_id),
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    entry = service.manual_register(
        user_id,
        request.source_control,
        request.repository_path,
        request.default_workflow_path,
        request.workflow_name,
        request.descriptor_type,
        request.default_test_parameter_file_path,
    )
    return entry.to_dict()


@router.post("/{entry_id}/restub")
async def restub_workflow(
    entry_id: int,
    user_id: int = Depends(get_current_user_id),
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    return service.restub(user_id, entry_id).to_dict()


@router.post("/{entry_id}/publish")
async def publish_workflow(
    entry_id: int,
    request: PublishRequest,
    user_id: int = Depends(get_current_user_id),
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    return service.publish(user_id, entry_id, request.publish).to_dict()


# =============================================================================
# Entry and Version Edits
# =============================================================================


@router.put("/{entry_id}")
async def update_workflow(
    entry_id: int,
    request: EntryUpdateRequest,
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    entry = service.update_entry(entry_id, **request.model_dump())
    return entry.to_dict()


@router.put("/{entry_id}/workflowVersions")
async def update_workflow_versions(
    entry_id: int,
    updates: List[VersionUpdate],
    service: EntryService = Depends(get_entry_service),
) -> List[Dict[str, Any]]:
    versions = service.update_versions(entry_id, [u.model_dump() for u in updates])
    return [v.to_dict() for v in versions]


@router.put("/{entry_id}/resetVersionPaths")
async def reset_version_paths(
    entry_id: int,
    request: ResetPathsRequest,
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    return service.reset_version_paths(entry_id, request.workflow_path).to_dict()


@router.put("/{entry_id}/verify/{version_id}")
async def verify_version(
    entry_id: int,
    version_id: int,
    request: VerifyRequest,
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    version = service.verify_version(
        entry_id, version_id, request.verify, request.verified_source
    )
    return version.to_dict()


# =============================================================================
# Source Files
# =============================================================================


@router.get("/{entry_id}/testParameterFiles")
async def get_test_parameter_files(
    entry_id: int,
    version: str,
    descriptor_type: Optional[str] = None,
    service: EntryService = Depends(get_entry_service),
) -> List[Dict[str, Any]]:
    files = service.get_test_parameter_files(entry_id, version, descriptor_type)
    return [f.to_dict() for f in files]


@router.put("/{entry_id}/testParameterFiles")
async def add_test_parameter_files(
    entry_id: int,
    version: str,
    request: TestParameterFilesRequest,
    service: EntryService = Depends(get_entry_service),
) -> List[Dict[str, Any]]:
    files = service.add_test_parameter_files(
        entry_id, version, request.paths, request.descriptor_type
    )
    return [f.to_dict() for f in files]


@router.delete("/{entry_id}/testParameterFiles")
async def delete_test_parameter_files(
    entry_id: int,
    version: str,
    request: TestParameterFilesRequest,
    service: EntryService = Depends(get_entry_service),
) -> List[Dict[str, Any]]:
    files = service.delete_test_parameter_files(
        entry_id, version, request.paths, request.descriptor_type
    )
    return [f.to_dict() for f in files]


@router.get("/{entry_id}/sourceFiles/{file_type}")
async def get_source_file(
    entry_id: int,
    file_type: FileType,
    version: str,
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    source_file = service.get_source_file(entry_id, version, file_type)
    if source_file is None:
        raise HTTPException(status_code=404, detail=f"No {file_type.value} file in {version}")
    return source_file.to_dict()


@router.get("/{entry_id}/secondaryDescriptors")
async def get_secondary_descriptors(
    entry_id: int,
    version: str,
    descriptor_type: Optional[str] = None,
    service: EntryService = Depends(get_entry_service),
) -> List[Dict[str, Any]]:
    files = service.get_secondary_files(entry_id, version, descriptor_type)
    return [f.to_dict() for f in files]


@router.get("/{entry_id}/dag/{version_id}")
async def get_dag(
    entry_id: int,
    version_id: int,
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    return {"dag": service.render(entry_id, version_id, RenderMode.DAG)}


@router.get("/{entry_id}/tools/{version_id}")
async def get_tools(
    entry_id: int,
    version_id: int,
    service: EntryService = Depends(get_entry_service),
) -> Dict[str, Any]:
    return {"tools": service.render(entry_id, version_id, RenderMode.TOOLS)}


# =============================================================================
# Checker Workflows
# =============================================================================


@entries_router.post("/{entry_id}/registerCheckerWorkflow/{descriptor_type}", status_code=201)
async def register_checker_workflow(
    entry_id: int,
    descriptor_type: str,
    request: CheckerWorkflowRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notifier: IndexNotifier = Depends(get_index_notifier),
) -> Dict[str, Any]:
    service = CheckerWorkflowService(EntryStore(db), notifier)
    entry = service.register(
        user_id,
        entry_id,
        request.checker_workflow_path,
        descriptor_type,
        request.test_parameter_path,
    )
    return entry.to_dict()
