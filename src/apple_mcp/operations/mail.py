"""Mail.app operations.

Each operation pairs an AppleScript primary path (text output, parsed by the
cascade in ``apple_mcp.execution.parsing``) with a JXA secondary path that
returns structured records.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from apple_mcp.config import SecuritySettings
from apple_mcp.execution.executor import AutomationOperation, SecondaryCall
from apple_mcp.execution.parsing import AutomationRecord, RecordSchema
from apple_mcp.security.escaping import (
    AppleScriptBuilder,
    ScriptFragment,
    escape_script_string,
    quote_script_string,
)
from apple_mcp.security.rate_limit import OperationClass
from apple_mcp.security.validation import (
    EmailAddress,
    FolderName,
    MessageContent,
    SearchQuery,
    sanitize_limit,
    validate_email,
    validate_folder_name,
    validate_message_content,
    validate_search_query,
)
from apple_mcp.utils.masking import truncate_preview

MAIL_APP = "Mail"
CONTENT_PREVIEW_LENGTH = 500


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


class EmailMessage(AutomationRecord):
    subject: str
    sender: str
    date_sent: str
    content: str
    is_read: bool
    mailbox: str


class NamedItem(AutomationRecord):
    name: str


class SendReceipt(AutomationRecord):
    status: str


def _raw_email_record(raw_text: str) -> dict[str, object]:
    return {
        "subject": "Raw AppleScript Output",
        "sender": "Mail System",
        "date_sent": _now(),
        "content": f"Could not parse Mail data properly. Raw output: {raw_text}",
        "is_read": False,
        "mailbox": "Debug",
    }


EMAIL_SCHEMA = RecordSchema(
    model=EmailMessage,
    defaults={
        "subject": lambda: "No subject",
        "sender": lambda: "Unknown sender",
        "date_sent": _now,
        "content": lambda: "[Content not available]",
        "is_read": lambda: False,
        "mailbox": lambda: "Unknown mailbox",
    },
    required_keys=frozenset({"subject", "sender"}),
    expected_tokens=("subject", "sender", "date", "content", "mailbox"),
    aliases={
        "date": "date_sent",
        "dateSent": "date_sent",
        "isRead": "is_read",
        "boxName": "mailbox",
    },
    raw_record=_raw_email_record,
)

NAME_SCHEMA = RecordSchema(
    model=NamedItem,
    defaults={"name": lambda: "Unknown"},
    required_keys=frozenset({"name"}),
)

RECEIPT_SCHEMA = RecordSchema(
    model=SendReceipt,
    defaults={"status": lambda: "unknown"},
    required_keys=frozenset({"status"}),
)


@dataclass(frozen=True)
class LimitArgs:
    limit: int


@dataclass(frozen=True)
class SearchArgs:
    query: SearchQuery
    limit: int


@dataclass(frozen=True)
class AccountArgs:
    account: FolderName
    limit: int = 5


@dataclass(frozen=True)
class SendMailArgs:
    to: EmailAddress
    subject: MessageContent
    body: MessageContent
    cc: EmailAddress | None = None
    bcc: EmailAddress | None = None


# AppleScript bodies. ``$name`` placeholders are filled by AppleScriptBuilder.line
# with escaped fragments or integers only.
#
# osascript prints records without braces or quotes, so each record is built
# as a ``{key:"value", ...}`` string; ``quoteField`` applies the same escapes
# as ``escape_script_string``.

_QUOTE_FIELD_HANDLER = r"""on quoteField(theValue)
    set theText to theValue as text
    repeat with pair in {{"\\", "\\\\"}, {quote, "\\" & quote}, {linefeed, "\\n"}, {return, "\\r"}, {tab, "\\t"}}
        set AppleScript's text item delimiters to item 1 of pair
        set pieces to text items of theText
        set AppleScript's text item delimiters to item 2 of pair
        set theText to pieces as text
    end repeat
    set AppleScript's text item delimiters to ""
    return quote & theText & quote
end quoteField"""

_UNREAD_BODY = """set resultList to {}
repeat with m in every mailbox
    try
        set unreadMessages to (messages of m whose read status is false)
        set msgLimit to $limit
        if (count of unreadMessages) < msgLimit then set msgLimit to (count of unreadMessages)
        repeat with i from 1 to msgLimit
            try
                set currentMsg to item i of unreadMessages
                set msgContent to "[Content not available]"
                try
                    set msgContent to content of currentMsg
                    if length of msgContent > $preview then set msgContent to (text 1 thru $preview of msgContent) & "..."
                end try
                set end of resultList to "{subject:" & my quoteField(subject of currentMsg) & ", sender:" & my quoteField(sender of currentMsg) & ", date:" & my quoteField(date sent of currentMsg) & ", mailbox:" & my quoteField(name of m) & ", content:" & my quoteField(msgContent) & "}"
            end try
        end repeat
        if (count of resultList) >= $limit then exit repeat
    end try
end repeat
return resultList"""

_SEARCH_BODY = """set searchString to $query
set foundMsgs to {}
repeat with currentBox in every mailbox
    try
        set boxMsgs to (messages of currentBox whose (subject contains searchString) or (content contains searchString))
        set foundMsgs to foundMsgs & boxMsgs
        if (count of foundMsgs) >= $limit then exit repeat
    end try
end repeat
set resultList to {}
set msgCount to (count of foundMsgs)
if msgCount > $limit then set msgCount to $limit
repeat with i from 1 to msgCount
    try
        set currentMsg to item i of foundMsgs
        set end of resultList to "{subject:" & my quoteField(subject of currentMsg) & ", sender:" & my quoteField(sender of currentMsg) & ", date:" & my quoteField(date sent of currentMsg) & ", isRead:" & my quoteField(read status of currentMsg) & ", boxName:" & my quoteField(name of (mailbox of currentMsg)) & "}"
    end try
end repeat
return resultList"""

_LATEST_BODY = """set resultList to {}
set targetAccount to first account whose name is $account
repeat with mb in (every mailbox of targetAccount)
    try
        set msgLimit to $limit
        if (count of messages of mb) < msgLimit then set msgLimit to (count of messages of mb)
        repeat with i from 1 to msgLimit
            try
                set currentMsg to message i of mb
                set msgContent to "[Content not available]"
                try
                    set msgContent to content of currentMsg
                    if length of msgContent > $preview then set msgContent to (text 1 thru $preview of msgContent) & "..."
                end try
                set end of resultList to "{subject:" & my quoteField(subject of currentMsg) & ", sender:" & my quoteField(sender of currentMsg) & ", date:" & my quoteField(date sent of currentMsg) & ", isRead:" & my quoteField(read status of currentMsg) & ", mailbox:" & my quoteField(name of mb) & ", content:" & my quoteField(msgContent) & "}"
            end try
        end repeat
        if (count of resultList) >= $limit then exit repeat
    end try
end repeat
return resultList"""

_NAMES_BODY = """set nameList to {}
repeat with thisItem in ($collection)
    set end of nameList to "{name:" & my quoteField(name of thisItem) & "}"
end repeat
return nameList"""


def _build(body: str, **values: ScriptFragment | int) -> str:
    return (
        AppleScriptBuilder()
        .tell(escape_script_string(MAIL_APP))
        .line(body, **values)
        .end_tell()
        .raw(_QUOTE_FIELD_HANDLER)
        .build()
    )


def unread_script(args: LimitArgs) -> str:
    return _build(_UNREAD_BODY, limit=args.limit, preview=CONTENT_PREVIEW_LENGTH)


def search_script(args: SearchArgs) -> str:
    return _build(_SEARCH_BODY, query=quote_script_string(args.query.value), limit=args.limit)


def latest_script(args: AccountArgs) -> str:
    return _build(
        _LATEST_BODY,
        account=quote_script_string(args.account.value),
        limit=args.limit,
        preview=CONTENT_PREVIEW_LENGTH,
    )


def send_script(args: SendMailArgs) -> str:
    builder = (
        AppleScriptBuilder()
        .tell(escape_script_string(MAIL_APP))
        .line(
            "set newMessage to make new outgoing message with properties "
            "{subject:$subject, content:$body, visible:true}",
            subject=quote_script_string(args.subject.value),
            body=quote_script_string(args.body.value),
        )
        .raw("tell newMessage")
        .line(
            "make new to recipient with properties {address:$address}",
            address=quote_script_string(args.to.value),
        )
    )
    if args.cc is not None:
        builder.line(
            "make new cc recipient with properties {address:$address}",
            address=quote_script_string(args.cc.value),
        )
    if args.bcc is not None:
        builder.line(
            "make new bcc recipient with properties {address:$address}",
            address=quote_script_string(args.bcc.value),
        )
    return (
        builder.raw("end tell")
        .raw("send newMessage")
        .end_tell()
        .raw('return "{status:sent}"')
        .build()
    )


def mailboxes_script(_: None) -> str:
    return _build(_NAMES_BODY, collection=ScriptFragment("every mailbox"))


def accounts_script(_: None) -> str:
    return _build(_NAMES_BODY, collection=ScriptFragment("every account"))


def account_mailboxes_script(args: AccountArgs) -> str:
    return _build(
        _NAMES_BODY,
        collection=ScriptFragment(
            f"every mailbox of (first account whose name is {quote_script_string(args.account.value)})"
        ),
    )


# JXA fallbacks. Arguments arrive as JSON values, never as program text.

_UNREAD_JXA = """function (limit) {
    var Mail = Application("Mail");
    var results = [];
    var accounts = Mail.accounts();
    for (var a = 0; a < accounts.length && results.length < limit; a++) {
        var accountName = accounts[a].name();
        var boxes = accounts[a].mailboxes();
        for (var b = 0; b < boxes.length && results.length < limit; b++) {
            var unread = boxes[b].messages.whose({readStatus: false})();
            for (var i = 0; i < unread.length && results.length < limit; i++) {
                var msg = unread[i];
                var content = msg.content();
                results.push({
                    subject: msg.subject(),
                    sender: msg.sender(),
                    dateSent: msg.dateSent().toString(),
                    content: content ? content.substring(0, 500) : null,
                    isRead: false,
                    mailbox: accountName + " - " + boxes[b].name()
                });
            }
        }
    }
    return results;
}"""

_SEARCH_JXA = """function (term, limit) {
    var Mail = Application("Mail");
    var results = [];
    var boxes = Mail.mailboxes();
    for (var b = 0; b < boxes.length && results.length < limit; b++) {
        var found = boxes[b].messages.whose({_or: [
            {subject: {_contains: term}},
            {content: {_contains: term}}
        ]})();
        for (var i = 0; i < found.length && results.length < limit; i++) {
            var msg = found[i];
            var content = msg.content();
            results.push({
                subject: msg.subject(),
                sender: msg.sender(),
                dateSent: msg.dateSent().toString(),
                content: content ? content.substring(0, 500) : null,
                isRead: msg.readStatus(),
                mailbox: boxes[b].name()
            });
        }
    }
    return results;
}"""

_LATEST_JXA = """function (account, limit) {
    var Mail = Application("Mail");
    var messages = [];
    var boxes = Mail.accounts.byName(account).mailboxes();
    for (var b = 0; b < boxes.length; b++) {
        var boxMessages = boxes[b].messages();
        for (var i = 0; i < boxMessages.length && i < limit; i++) {
            messages.push({msg: boxMessages[i], box: boxes[b].name(), date: boxMessages[i].dateSent()});
        }
    }
    messages.sort(function (x, y) { return y.date - x.date; });
    return messages.slice(0, limit).map(function (entry) {
        var content = entry.msg.content();
        return {
            subject: entry.msg.subject(),
            sender: entry.msg.sender(),
            dateSent: entry.date.toString(),
            content: content ? content.substring(0, 500) : null,
            isRead: entry.msg.readStatus(),
            mailbox: account + " - " + entry.box
        };
    });
}"""

_SEND_JXA = """function (to, subject, body, cc, bcc) {
    var Mail = Application("Mail");
    var msg = Mail.OutgoingMessage({subject: subject, content: body, visible: true});
    Mail.outgoingMessages.push(msg);
    msg.toRecipients.push(Mail.ToRecipient({address: to}));
    if (cc) { msg.ccRecipients.push(Mail.CcRecipient({address: cc})); }
    if (bcc) { msg.bccRecipients.push(Mail.BccRecipient({address: bcc})); }
    msg.send();
    return {status: "sent"};
}"""

_MAILBOXES_JXA = """function () {
    return Application("Mail").mailboxes().map(function (box) { return {name: box.name()}; });
}"""

_ACCOUNTS_JXA = """function () {
    return Application("Mail").accounts().map(function (acct) { return {name: acct.name()}; });
}"""

_ACCOUNT_MAILBOXES_JXA = """function (account) {
    return Application("Mail").accounts.byName(account).mailboxes().map(function (box) {
        return {name: box.name()};
    });
}"""


def _optional_email(raw: Mapping[str, object], key: str) -> EmailAddress | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    return validate_email(value, field=key)


def _no_args(_: Mapping[str, object]) -> None:
    return None


@dataclass(frozen=True)
class MailOperations:
    unread: AutomationOperation[LimitArgs]
    search: AutomationOperation[SearchArgs]
    send: AutomationOperation[SendMailArgs]
    mailboxes: AutomationOperation[None]
    accounts: AutomationOperation[None]
    account_mailboxes: AutomationOperation[AccountArgs]
    latest: AutomationOperation[AccountArgs]


def build_mail_operations(security: SecuritySettings) -> MailOperations:
    """Bind the mail operations to the configured input limits."""

    def limit_of(raw: Mapping[str, object]) -> int:
        return sanitize_limit(raw.get("limit"), security.max_search_results)

    def validate_send(raw: Mapping[str, object]) -> SendMailArgs:
        return SendMailArgs(
            to=validate_email(raw.get("to"), field="to"),
            subject=validate_message_content(
                raw.get("subject"), security.max_message_length, field="subject"
            ),
            body=validate_message_content(
                raw.get("body"), security.max_message_length, field="body"
            ),
            cc=_optional_email(raw, "cc"),
            bcc=_optional_email(raw, "bcc"),
        )

    def validate_account(raw: Mapping[str, object]) -> AccountArgs:
        return AccountArgs(account=validate_folder_name(raw.get("account"), field="account"))

    def validate_latest(raw: Mapping[str, object]) -> AccountArgs:
        limit = sanitize_limit(raw.get("limit", 5), security.max_search_results)
        return AccountArgs(
            account=validate_folder_name(raw.get("account"), field="account"),
            limit=limit,
        )

    return MailOperations(
        unread=AutomationOperation(
            name="mail.get_unread",
            schema=EMAIL_SCHEMA,
            validate=lambda raw: LimitArgs(limit=limit_of(raw)),
            build_script=unread_script,
            operation_class=OperationClass.EMAILS,
            secondary=lambda args: SecondaryCall(_UNREAD_JXA, (args.limit,)),
            audit_details=lambda args: {"limit": args.limit},
            limit=lambda args: args.limit,
            application=MAIL_APP,
        ),
        search=AutomationOperation(
            name="mail.search",
            schema=EMAIL_SCHEMA,
            validate=lambda raw: SearchArgs(
                query=validate_search_query(raw.get("searchTerm")),
                limit=limit_of(raw),
            ),
            build_script=search_script,
            operation_class=OperationClass.SEARCH,
            secondary=lambda args: SecondaryCall(_SEARCH_JXA, (args.query.value, args.limit)),
            audit_details=lambda args: {
                "query": truncate_preview(args.query.value),
                "limit": args.limit,
            },
            limit=lambda args: args.limit,
            application=MAIL_APP,
        ),
        send=AutomationOperation(
            name="mail.send",
            schema=RECEIPT_SCHEMA,
            validate=validate_send,
            build_script=send_script,
            operation_class=OperationClass.WRITE,
            secondary=lambda args: SecondaryCall(
                _SEND_JXA,
                (
                    args.to.value,
                    args.subject.value,
                    args.body.value,
                    args.cc.value if args.cc else None,
                    args.bcc.value if args.bcc else None,
                ),
            ),
            audit_details=lambda args: {
                "to": args.to.value,
                "subject": truncate_preview(args.subject.value),
                "cc": args.cc.value if args.cc else None,
                "bcc": args.bcc.value if args.bcc else None,
            },
            application=MAIL_APP,
        ),
        mailboxes=AutomationOperation(
            name="mail.list_mailboxes",
            schema=NAME_SCHEMA,
            validate=_no_args,
            build_script=mailboxes_script,
            operation_class=OperationClass.EMAILS,
            secondary=lambda _: SecondaryCall(_MAILBOXES_JXA),
            application=MAIL_APP,
        ),
        accounts=AutomationOperation(
            name="mail.list_accounts",
            schema=NAME_SCHEMA,
            validate=_no_args,
            build_script=accounts_script,
            operation_class=OperationClass.EMAILS,
            secondary=lambda _: SecondaryCall(_ACCOUNTS_JXA),
            application=MAIL_APP,
        ),
        account_mailboxes=AutomationOperation(
            name="mail.mailboxes_for_account",
            schema=NAME_SCHEMA,
            validate=validate_account,
            build_script=account_mailboxes_script,
            operation_class=OperationClass.EMAILS,
            secondary=lambda args: SecondaryCall(_ACCOUNT_MAILBOXES_JXA, (args.account.value,)),
            audit_details=lambda args: {"account": args.account.value},
            application=MAIL_APP,
        ),
        latest=AutomationOperation(
            name="mail.latest",
            schema=EMAIL_SCHEMA,
            validate=validate_latest,
            build_script=latest_script,
            operation_class=OperationClass.EMAILS,
            secondary=lambda args: SecondaryCall(
                _LATEST_JXA, (args.account.value, args.limit)
            ),
            audit_details=lambda args: {"account": args.account.value, "limit": args.limit},
            limit=lambda args: args.limit,
            application=MAIL_APP,
        ),
    )
