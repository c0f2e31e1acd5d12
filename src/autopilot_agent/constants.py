"""
Default values and thresholds for autopilot-agent.

Values here describe the reference workload: a service whose replicas each
absorb a fixed request rate, a baseline deployment of three replicas, and a
governance ceiling of ten replicas before a human has to sign off.
"""

# Load/capacity model
DEFAULT_CAPACITY_PER_REPLICA = 200
DEFAULT_INITIAL_DEMAND = 100.0
BASELINE_REPLICAS = 3

# Health classification
CRITICAL_CPU_THRESHOLD = 90
MAX_CPU_LOAD = 100
MEMORY_CPU_FACTOR = 0.8
MEMORY_BASELINE = 20

# Alert escalation: demand = ALERT_BASE_DEMAND + level * ALERT_DEMAND_STEP
ALERT_BASE_DEMAND = 500
ALERT_DEMAND_STEP = 500

# Policy guardrails
MAX_REPLICAS_WITHOUT_APPROVAL = 10

# Autopilot
DEFAULT_AUTOPILOT_DELAY_SECONDS = 2.0
DEFAULT_AUTOPILOT_HEADROOM = 1.2
DEFAULT_AUTOPILOT_MIN_STEP = 2

# Remote target delegate
DEFAULT_DELEGATE_TIMEOUT_SECONDS = 5

# Audit trail
DEFAULT_AUDIT_BUFFER_SIZE = 1000

# HTTP server
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3001
DEFAULT_REGISTRY_PATH = "services.json"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
