"""Built-in workflow and recurring task templates.

Raw data lives in plain dicts and is validated into models on each call, so callers can
mutate what they receive without touching the catalog.
"""

from __future__ import annotations

from typing import Any

from .models import RecurringTemplate, WorkflowSpec

RESIDENTIAL_AND_COMMERCIAL = ["Apartment", "House", "Condo", "Commercial"]

_WORKFLOW_TEMPLATES: list[dict[str, Any]] = [
    {
        "name": "New Asset Onboarding",
        "description": "Complete workflow for onboarding a new asset",
        "steps": [
            {
                "id": 1,
                "title": "Initial Inspection for {assetName}",
                "description": "Conduct comprehensive initial inspection",
                "type": "Inspection",
                "priority": "High",
                "days_from_start": 1,
            },
            {
                "id": 2,
                "title": "Documentation Setup for {assetName}",
                "description": "Set up asset documentation and records",
                "type": "Documentation",
                "priority": "Medium",
                "days_from_start": 2,
                "depends_on_previous": True,
            },
            {
                "id": 3,
                "title": "Safety Assessment for {assetName}",
                "description": "Conduct safety and compliance assessment",
                "type": "Safety Check",
                "priority": "High",
                "days_from_start": 3,
            },
            {
                "id": 4,
                "title": "Maintenance Schedule Setup for {assetName}",
                "description": "Establish regular maintenance schedule",
                "type": "Planning",
                "priority": "Medium",
                "days_from_start": 7,
                "depends_on_previous": True,
                "dependencies": [1, 3],
            },
        ],
        "asset_types": RESIDENTIAL_AND_COMMERCIAL,
        "triggers": ["asset_created", "asset_acquired"],
    },
    {
        "name": "Quarterly Maintenance Cycle",
        "description": "Standard quarterly maintenance workflow",
        "steps": [
            {
                "id": 1,
                "title": "Pre-Maintenance Inspection for {assetName}",
                "description": "Inspect asset before maintenance work",
                "type": "Inspection",
                "priority": "Medium",
                "days_from_start": 0,
            },
            {
                "id": 2,
                "title": "HVAC Maintenance for {assetName}",
                "description": "Service and maintain HVAC systems",
                "type": "Maintenance",
                "priority": "High",
                "days_from_start": 2,
                "depends_on_previous": True,
            },
            {
                "id": 3,
                "title": "Plumbing Check for {assetName}",
                "description": "Inspect and maintain plumbing systems",
                "type": "Maintenance",
                "priority": "Medium",
                "days_from_start": 3,
            },
            {
                "id": 4,
                "title": "Electrical Systems Check for {assetName}",
                "description": "Inspect electrical systems and safety",
                "type": "Safety Check",
                "priority": "High",
                "days_from_start": 4,
            },
            {
                "id": 5,
                "title": "Post-Maintenance Inspection for {assetName}",
                "description": "Final inspection after maintenance work",
                "type": "Inspection",
                "priority": "Medium",
                "days_from_start": 7,
                "depends_on_previous": True,
                "dependencies": [2, 3, 4],
            },
        ],
        "asset_types": RESIDENTIAL_AND_COMMERCIAL,
        "triggers": ["quarterly_schedule", "maintenance_due"],
    },
    {
        "name": "Emergency Response Workflow",
        "description": "Emergency response and repair workflow",
        "steps": [
            {
                "id": 1,
                "title": "Emergency Assessment for {assetName}",
                "description": "Immediate assessment of emergency situation",
                "type": "Inspection",
                "priority": "High",
                "days_from_start": 0,
            },
            {
                "id": 2,
                "title": "Safety Measures for {assetName}",
                "description": "Implement immediate safety measures",
                "type": "Safety Check",
                "priority": "High",
                "days_from_start": 0,
                "depends_on_previous": True,
            },
            {
                "id": 3,
                "title": "Emergency Repair for {assetName}",
                "description": "Conduct emergency repairs",
                "type": "Emergency Repair",
                "priority": "High",
                "days_from_start": 1,
                "depends_on_previous": True,
            },
            {
                "id": 4,
                "title": "Post-Emergency Inspection for {assetName}",
                "description": "Verify repairs and safety",
                "type": "Inspection",
                "priority": "High",
                "days_from_start": 2,
                "depends_on_previous": True,
            },
        ],
        "asset_types": RESIDENTIAL_AND_COMMERCIAL,
        "triggers": ["emergency_reported", "critical_condition"],
    },
]

_RECURRING_TEMPLATES: list[dict[str, Any]] = [
    {
        "id": "annual-inspection",
        "name": "Annual Property Inspection",
        "description": (
            "Comprehensive annual inspection covering all property systems and components"
        ),
        "type": "Inspection",
        "priority": "High",
        "estimated_duration": 240,
        "frequency": "Annual",
        "phase": "acquisition",
        "checklist": [
            "Exterior building condition",
            "Roof and gutters inspection",
            "Plumbing systems check",
            "Electrical systems inspection",
            "HVAC system evaluation",
            "Interior condition assessment",
            "Safety equipment check",
            "Documentation and photos",
        ],
        "required_tools": ["Camera", "Measuring tape", "Flashlight", "Inspection forms"],
        "notes": "Schedule during dry weather for best exterior assessment.",
    },
    {
        "id": "quarterly-safety-check",
        "name": "Quarterly Safety Check",
        "description": "Safety systems and equipment inspection",
        "type": "Safety Check",
        "priority": "High",
        "estimated_duration": 90,
        "frequency": "Quarterly",
        "phase": "maintenance",
        "checklist": [
            "Smoke detector functionality",
            "Carbon monoxide detector test",
            "Fire extinguisher check",
            "Emergency lighting test",
            "Security system verification",
            "Window and door locks",
            "Stair railings and safety",
            "Electrical outlet safety",
        ],
        "required_tools": ["Battery tester", "Test button checker", "Screwdriver"],
        "notes": "Replace batteries in detectors as needed.",
    },
    {
        "id": "move-in-inspection",
        "name": "Move-in Property Inspection",
        "description": "Detailed inspection before new tenant move-in",
        "type": "Inspection",
        "priority": "High",
        "estimated_duration": 120,
        "frequency": "As Needed",
        "phase": "acquisition",
        "checklist": [
            "Overall cleanliness check",
            "Wall and ceiling condition",
            "Floor condition and cleanliness",
            "Window condition and operation",
            "Appliance functionality",
            "Plumbing fixtures operation",
            "Light fixtures and switches",
            "Key and access verification",
        ],
        "required_tools": ["Camera", "Inspection forms", "Cleaning checklist"],
        "notes": "Complete before keys are handed over.",
    },
    {
        "id": "hvac-maintenance",
        "name": "HVAC System Maintenance",
        "description": "Regular maintenance of heating, ventilation, and air conditioning systems",
        "type": "Maintenance",
        "priority": "Medium",
        "estimated_duration": 180,
        "frequency": "Bi-annual",
        "phase": "maintenance",
        "checklist": [
            "Filter replacement/cleaning",
            "Coil cleaning (indoor/outdoor)",
            "Thermostat calibration",
            "Ductwork inspection",
            "Refrigerant level check",
            "System performance test",
        ],
        "required_tools": ["Replacement filters", "Cleaning supplies", "Multimeter"],
        "notes": "Schedule before peak heating/cooling seasons.",
    },
    {
        "id": "plumbing-maintenance",
        "name": "Plumbing System Check",
        "description": "Comprehensive plumbing system inspection and maintenance",
        "type": "Maintenance",
        "priority": "Medium",
        "estimated_duration": 120,
        "frequency": "Bi-annual",
        "phase": "maintenance",
        "checklist": [
            "Faucet and fixture inspection",
            "Toilet operation check",
            "Drain flow testing",
            "Pipe leak inspection",
            "Water pressure assessment",
            "Hot water heater check",
            "Shut-off valve operation",
        ],
        "required_tools": ["Plumber tools", "Pressure gauge", "Flashlight"],
        "notes": "Address minor leaks immediately to prevent major damage.",
    },
    {
        "id": "exterior-maintenance",
        "name": "Exterior Property Maintenance",
        "description": "Maintenance of building exterior and grounds",
        "type": "Maintenance",
        "priority": "Medium",
        "estimated_duration": 240,
        "frequency": "Bi-annual",
        "phase": "maintenance",
        "checklist": [
            "Roof inspection and repairs",
            "Gutter cleaning and inspection",
            "Exterior paint touch-ups",
            "Driveway and walkway condition",
            "Landscaping and lawn care",
            "Outdoor lighting check",
        ],
        "required_tools": ["Ladder", "Garden tools", "Paint supplies"],
        "notes": "Weather-dependent task.",
    },
    {
        "id": "deep-cleaning",
        "name": "Deep Cleaning Service",
        "description": "Thorough cleaning of entire property",
        "type": "Cleaning",
        "priority": "Medium",
        "estimated_duration": 480,
        "frequency": "Quarterly",
        "phase": "maintenance",
        "checklist": [
            "All rooms thoroughly cleaned",
            "Kitchen appliances detailed",
            "Bathroom deep clean and sanitize",
            "Window cleaning (interior/exterior)",
            "Floor deep cleaning/polishing",
            "Baseboard and trim cleaning",
        ],
        "required_tools": ["Cleaning supplies", "Vacuum", "Mop", "Window cleaner"],
        "notes": "Best performed between tenants or during extended vacancy periods.",
    },
    {
        "id": "move-out-cleaning",
        "name": "Move-out Cleaning",
        "description": "Comprehensive cleaning after tenant move-out",
        "type": "Cleaning",
        "priority": "High",
        "estimated_duration": 360,
        "frequency": "As Needed",
        "phase": "maintenance",
        "checklist": [
            "All surfaces wiped and sanitized",
            "Appliances cleaned inside and out",
            "Floors thoroughly cleaned",
            "Bathrooms deep cleaned",
            "Touch-up painting as needed",
        ],
        "required_tools": ["Cleaning supplies", "Paint for touch-ups"],
        "notes": "Take before/after photos.",
    },
    {
        "id": "emergency-repair",
        "name": "Emergency Repair Response",
        "description": "Immediate response for urgent property issues",
        "type": "Repair",
        "priority": "High",
        "estimated_duration": 60,
        "frequency": "As Needed",
        "phase": "maintenance",
        "checklist": [
            "Assess safety concerns",
            "Identify root cause",
            "Implement temporary fix",
            "Document damage",
            "Schedule permanent repair",
            "Update property records",
        ],
        "required_tools": ["Emergency toolkit", "Camera", "Contact list", "First aid kit"],
        "notes": "Prioritize safety first.",
    },
    {
        "id": "minor-repairs",
        "name": "Minor Repairs and Touch-ups",
        "description": "Small repairs and maintenance tasks",
        "type": "Repair",
        "priority": "Low",
        "estimated_duration": 120,
        "frequency": "Monthly",
        "phase": "maintenance",
        "checklist": [
            "Touch-up paint where needed",
            "Tighten loose fixtures",
            "Replace burnt-out bulbs",
            "Adjust door and cabinet hinges",
            "Caulk gaps and cracks",
            "Lubricate moving parts",
        ],
        "required_tools": ["Basic tool kit", "Paint supplies", "Light bulbs", "Caulk"],
        "notes": "Keep detailed records.",
    },
    {
        "id": "renovation-planning",
        "name": "Renovation Project Planning",
        "description": "Planning and preparation for property renovation",
        "type": "Planning",
        "priority": "Medium",
        "estimated_duration": 240,
        "frequency": "As Needed",
        "phase": "renovation",
        "checklist": [
            "Define renovation scope",
            "Get multiple contractor quotes",
            "Check permit requirements",
            "Plan timeline and phases",
            "Budget preparation",
            "Finalize contracts and agreements",
        ],
        "required_tools": ["Measuring tools", "Planning documents", "Calculator"],
        "notes": "Thorough planning prevents cost overruns and delays.",
    },
    {
        "id": "budget-review",
        "name": "Property Budget Review",
        "description": "Quarterly review of property expenses and budget",
        "type": "Planning",
        "priority": "Medium",
        "estimated_duration": 120,
        "frequency": "Quarterly",
        "phase": "acquisition",
        "checklist": [
            "Review maintenance expenses",
            "Analyze utility costs",
            "Review insurance costs",
            "Evaluate rental income",
            "Plan upcoming expenses",
            "Adjust budget for next quarter",
        ],
        "required_tools": ["Financial records", "Calculator", "Budget spreadsheets"],
        "notes": "Regular budget reviews help plan for improvements.",
    },
]


def builtin_workflow_templates() -> list[WorkflowSpec]:
    return [WorkflowSpec.model_validate(raw) for raw in _WORKFLOW_TEMPLATES]


def builtin_recurring_templates() -> list[RecurringTemplate]:
    return [RecurringTemplate.model_validate(raw) for raw in _RECURRING_TEMPLATES]
