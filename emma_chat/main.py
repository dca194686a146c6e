"""
Terminal demo: run with python -m emma_chat.main [language]
Uses OPENAI_API_KEY; set it or use a .env file. Acts as the caller: keeps the transcript and
dialogue state, and merges each turn's records into a lead profile.
"""
from __future__ import annotations

import json
import sys
import uuid

from emma_chat.config import get_settings
from emma_chat.lead import LeadProfile, fill_missing_criteria, merge_lead
from emma_chat.orchestrator import handle_chat
from emma_chat.prompts import apology
from emma_chat.schemas import ChatRequest, DialogueState, Err, Turn


def main() -> None:
    if not get_settings().openai_api_key:
        print("Set OPENAI_API_KEY to run demo (e.g. export OPENAI_API_KEY=sk-...)")
        return

    language = sys.argv[1] if len(sys.argv) > 1 else "en"
    conversation_id = str(uuid.uuid4())
    history: list[Turn] = []
    state = DialogueState()
    lead = LeadProfile(conversation_id=conversation_id, detected_language=language)

    print(f"--- emma-chat demo ({language}), empty line to quit ---\n")
    while True:
        try:
            message = input("you> ").strip()
        except EOFError:
            break
        if not message:
            break

        result = handle_chat(
            ChatRequest(
                conversation_id=conversation_id,
                message=message,
                language=language,
                conversation_history=history,
                dialogue_state=state,
            )
        )
        if isinstance(result, Err):
            print(f"emma> {apology(language)}")
            print(f"  [{result.error.log_fields}]\n")
            continue

        reply = result.value
        print(f"emma> {reply.response}\n")
        if reply.collected_info or reply.custom_fields:
            print(f"  [collected={reply.to_wire()['collectedInfo']} custom={reply.to_wire()['customFields']}]")
        if reply.missing_fields:
            print(f"  [missing={reply.missing_fields}]")

        history += [Turn(role="user", content=message), Turn(role="assistant", content=reply.response)]
        state = reply.dialogue_state
        lead = merge_lead(lead, reply.collected_info, reply.custom_fields, phase=state.phase)
        lead = lead.model_copy(update={"conversation_transcript": list(history)})
        if lead.intake_complete or lead.declined_selection:
            break

    lead = fill_missing_criteria(lead)
    print("--- lead profile ---")
    print(json.dumps(lead.to_crm_payload(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
