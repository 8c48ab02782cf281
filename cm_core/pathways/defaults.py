# cm_core/pathways/defaults.py
"""
Starter configuration for a new church: both pathways with their stages and
the automation rules that ship enabled by default.
"""
from __future__ import annotations

from cm_core.pathways.constants import AutoAdvanceType, Pathway
from cm_core.tasks.constants import TaskPriority

DEFAULT_STAGES = {
    Pathway.NEWCOMER: [
        {"name": "Sunday Exp", "description": "First time visit or contact card filled out."},
        {"name": "Tent", "description": "Visited the welcome tent or info desk."},
        {
            "name": "Lunch",
            "description": "Attended Newcomers Lunch to meet pastors.",
            "auto_advance_type": AutoAdvanceType.TASK_COMPLETED,
            "auto_advance_value": "Lunch",
        },
        {"name": "Social", "description": "Attended a church social event."},
        {"name": "Connect Grp", "description": "Joined a small group or bible study."},
        {"name": "Growth Track", "description": "Completed membership class."},
        {"name": "Serve", "description": "Joined a serving team."},
    ],
    Pathway.NEW_BELIEVER: [
        {"name": "Sunday Exp", "description": "Attended service and heard the Gospel."},
        {"name": "Salvation", "description": "Made a decision for Christ."},
        {"name": "Next Steps", "description": "Received Bible and starter guide."},
        {"name": "Baptism", "description": "Scheduled or completed water baptism."},
        {"name": "Connect Grp", "description": "Plugged into community for discipleship."},
        {"name": "Growth Track", "description": "Learning spiritual gifts and purpose."},
        {"name": "Serve", "description": "Actively serving in ministry."},
    ],
}

# (pathway, stage name) -> rules fired when a member enters that stage
DEFAULT_AUTOMATION_RULES = [
    {
        "pathway": Pathway.NEWCOMER,
        "stage": "Lunch",
        "name": "Lunch confirmation call",
        "task_description": "Call to confirm Lunch attendance",
        "days_due": 2,
        "priority": TaskPriority.MEDIUM,
    },
    {
        "pathway": Pathway.NEWCOMER,
        "stage": "Connect Grp",
        "name": "Connect group introduction",
        "task_description": "Connect Group Introduction Email",
        "days_due": 3,
        "priority": TaskPriority.HIGH,
    },
    {
        "pathway": Pathway.NEW_BELIEVER,
        "stage": "Next Steps",
        "name": "Next Steps guide delivery",
        "task_description": 'Deliver "Next Steps" Bible Guide',
        "days_due": 1,
        "priority": TaskPriority.HIGH,
    },
    {
        "pathway": Pathway.NEW_BELIEVER,
        "stage": "Baptism",
        "name": "Baptism interview",
        "task_description": "Schedule Baptism Interview",
        "days_due": 5,
        "priority": TaskPriority.HIGH,
    },
]
