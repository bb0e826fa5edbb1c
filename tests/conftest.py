"""Shared fixtures for cascade-rules tests."""

import pytest

from cascade_rules.ast_nodes import Document, DocumentType
from cascade_rules.engine import CascadeConfig, CascadeEngine
from cascade_rules.loader import load_definition
from cascade_rules.resilience import NO_RETRY
from cascade_rules.store import MemoryStore
from cascade_rules.validator import Validator


@pytest.fixture
def validator():
    return Validator()


@pytest.fixture
def engine():
    return CascadeEngine(config=CascadeConfig(retry_policy=NO_RETRY))


# ---------------------------------------------------------------------------
# Sample definitions
# ---------------------------------------------------------------------------

PERMIT_DEFINITION = '''
workflow:
  id: wf-permits
  name: Permits
  actors: [Applicant, Reviewer]
  rules:
    - id: permit-done
      validation: document.Permit.status == "completed"
      action: Inspection.status = "queued"
    - id: inspection-queued
      validation: document.Inspection.status == "queued"
      action: Certificate.status = "waiting"

documentTypes:
  - id: dt-permit
    name: Building Permit
    identifier: Permit
    definition:
      fields:
        - {name: status, type: select, defaultValue: completed}
        - {name: paid, type: checkbox}
        - {name: notes, type: text}
  - id: dt-inspection
    name: Site Inspection
    identifier: Inspection
  - id: dt-certificate
    name: Occupancy Certificate
    identifier: Certificate
  - id: dt-archive
    name: Archive Copy
    identifier: Archive
    isActive: false

documents:
  - id: doc-permit
    documentType: dt-permit
    formData: {status: completed}
  - id: doc-inspection
    documentType: dt-inspection
    formData: {status: waiting}
  - id: doc-certificate
    documentType: dt-certificate
    formData: {}
'''


def make_type(identifier, **kwargs):
    kwargs.setdefault("id", f"dt-{identifier.lower()}")
    kwargs.setdefault("name", identifier)
    return DocumentType(identifier=identifier, **kwargs)


def make_document(doc_id, document_type_id, status="queued", **form_data):
    return Document(
        id=doc_id,
        project_id="project-1",
        document_type_id=document_type_id,
        form_data=form_data,
        status=status,
    )


@pytest.fixture
def permit_source():
    return PERMIT_DEFINITION


@pytest.fixture
def permit_definition():
    return load_definition(PERMIT_DEFINITION)


@pytest.fixture
def permit_store(permit_definition):
    return MemoryStore(permit_definition.records)
