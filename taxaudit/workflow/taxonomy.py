"""Fixed task taxonomy and enumerations for the tax audit workflow.

Every value here is persisted verbatim, so the string values double as the
wire and storage representation.
"""

import enum


class TaskType(str, enum.Enum):
    """The fourteen audit checklist items, in display order."""

    OPENING_BALANCE_VERIFICATION = "Opening Balance Verification"
    AUDIT_QUERIES_STATUS_CHECKING = "Audit Queries Status Checking"
    LEDGER_SCRUTINY = "Ledger Scrutiny"
    CHECKING_26AS = "26AS Checking"
    AIS_CHECKING = "AIS Checking"
    GST_VERIFICATION = "GST Verification"
    DATA_FEEDING = "Data feeding in Software"
    DISALLOWANCES_IN_3CD = "Dis-allowances in 3CD"
    LEVEL1_APPROVAL = "Check and Approved by (Level 1)"
    COPY_TO_REHAN_SIR = "Copy to Rehan Sir"
    PREPARED_3CD = "3CD Prepared by"
    COMPUTATION_CHECKING = "Computation of Total Income Checking"
    FINAL_VERIFICATION = "Final Verification before Upload to IT Portal"
    UDIN_NUMBER = "UDIN Number"


REGULAR_TASKS: tuple[TaskType, ...] = (
    TaskType.OPENING_BALANCE_VERIFICATION,
    TaskType.AUDIT_QUERIES_STATUS_CHECKING,
    TaskType.LEDGER_SCRUTINY,
    TaskType.CHECKING_26AS,
    TaskType.AIS_CHECKING,
    TaskType.GST_VERIFICATION,
    TaskType.DATA_FEEDING,
)
"""Always-available checklist items."""

SPECIAL_TASKS: tuple[TaskType, ...] = (
    TaskType.DISALLOWANCES_IN_3CD,
    TaskType.LEVEL1_APPROVAL,
    TaskType.COPY_TO_REHAN_SIR,
    TaskType.PREPARED_3CD,
    TaskType.COMPUTATION_CHECKING,
    TaskType.FINAL_VERIFICATION,
    TaskType.UDIN_NUMBER,
)
"""Gated or role-restricted checklist items."""

ALL_TASKS: tuple[TaskType, ...] = REGULAR_TASKS + SPECIAL_TASKS


def is_special_task(task_type: TaskType) -> bool:
    """Return True for gated/role-restricted task types."""
    return task_type in SPECIAL_TASKS


class QueryResolution(str, enum.Enum):
    """Tri-state queriesSolved value recorded on each entry."""

    YES = "Yes"
    NO = "No"
    PARTIAL = "Partial"


class PreparationStatus(str, enum.Enum):
    """Preparation state of the 3CD report."""

    DONE = "Done"
    PARTIAL = "Partial"


class Status(str, enum.Enum):
    """Derived status of a task or a client. Never persisted."""

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ISSUES_FOUND = "Issues Found"


class Rights(str, enum.Enum):
    """Login role levels. Each is a named set of task types, not a rank."""

    TOP_LEVEL = "Top Level Rights"
    STAGE_1 = "Stage 1 rights"
    STAGE_2 = "Stage 2 rights"


class RegistrationStatus(str, enum.Enum):
    """GST registration of a client."""

    REGISTERED = "Registered"
    UNREGISTERED = "Unregistered"


class ResubmissionStatus(str, enum.Enum):
    """Status of one resubmission round for the Rehan Sir copy."""

    REQUIRED = "Resubmission Required"
    RESUBMITTED = "Resubmitted"
    RECEIVED = "Received"


class RepreparationStatus(str, enum.Enum):
    """Status of one re-preparation round for the 3CD report."""

    REQUIRED = "Re-preparation Required"
    REPREPARED = "Re-prepared By"
    COMPLETED = "Completed"


INDIAN_STATES: tuple[str, ...] = (
    "Andhra Pradesh",
    "Arunachal Pradesh",
    "Assam",
    "Bihar",
    "Chhattisgarh",
    "Goa",
    "Gujarat",
    "Haryana",
    "Himachal Pradesh",
    "Jharkhand",
    "Karnataka",
    "Kerala",
    "Madhya Pradesh",
    "Maharashtra",
    "Manipur",
    "Meghalaya",
    "Mizoram",
    "Nagaland",
    "Odisha",
    "Punjab",
    "Rajasthan",
    "Sikkim",
    "Tamil Nadu",
    "Telangana",
    "Tripura",
    "Uttar Pradesh",
    "Uttarakhand",
    "West Bengal",
    "Delhi",
    "Jammu and Kashmir",
    "Ladakh",
    "Chandigarh",
    "Dadra and Nagar Haveli and Daman and Diu",
    "Lakshadweep",
    "Puducherry",
)

UDIN_PREPARED_UNDER_OPTIONS: tuple[str, ...] = (
    "Clause 44AB(a)- Total sales/turnover/gross receipts of business exceeding specified limits",
    "Clause 44AB(b)- Gross receipts of profession exceeding specified limits",
    "Clause 44AB(d)- Profits and gains lower than deemed profit u/s 44ADA",
    "Third Proviso to sec 44AB : Audited under any other law",
    "Clause 44AB(e)- When provisions of section 44AD(4) are applicable",
)

MAX_DISALLOWANCES = 10
MAX_PENDENCIES = 10
MAX_UPDATED_BY = 5
