"""Platform class, space and enum identifiers used by the operations."""

PROJECT = "tracker:class:Project"
ISSUE = "tracker:class:Issue"
ISSUE_STATUS = "tracker:class:IssueStatus"
COMPONENT = "tracker:class:Component"
MILESTONE = "tracker:class:Milestone"
ISSUE_TEMPLATE = "tracker:class:IssueTemplate"
ISSUE_TASK_TYPE = "tracker:taskTypes:Issue"
LABEL_CATEGORY = "tracker:category:Other"

DOC = "core:class:Doc"
STATUS = "core:class:Status"
PROJECT_TYPE = "task:class:ProjectType"
STATUS_CATEGORY_WON = "task:statusCategory:Won"
STATUS_CATEGORY_LOST = "task:statusCategory:Lost"

PERSON = "contact:class:Person"
CHANNEL = "contact:class:Channel"
EMAIL_PROVIDER = "contact:channelProvider:Email"

TAG_ELEMENT = "tags:class:TagElement"
TAG_REFERENCE = "tags:class:TagReference"

CHAT_MESSAGE = "chunter:class:ChatMessage"
THREAD_MESSAGE = "chunter:class:ThreadMessage"

ACTIVITY_MESSAGE = "activity:class:ActivityMessage"
REACTION = "activity:class:Reaction"
SAVED_MESSAGE = "activity:class:SavedMessage"
USER_MENTION_INFO = "activity:class:UserMentionInfo"

TEAMSPACE = "document:class:Teamspace"
DOCUMENT = "document:class:Document"
DOCUMENT_NO_PARENT = "document:ids:NoParent"

SPACE_SPACE = "core:space:Space"
SPACE_WORKSPACE = "core:space:Workspace"

ASCENDING = 1
DESCENDING = -1

MILESTONE_STATUSES = {
    "planned": 0,
    "in-progress": 1,
    "completed": 2,
    "canceled": 3,
}
