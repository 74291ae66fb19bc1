"""
Deck chat prompts.

The model is shown a skeleton of the deck (numbers and titles) instead of full
slide bodies; it can ask for bodies through the ``info`` action.
"""

import json
from typing import List, Sequence

from deckstream.domain.entities.slide import Slide


# ---------- SYSTEM PROMPT ----------
SYSTEM_PROMPT = """You are an expert AI presentation architect.
You help users structure ideas, design layouts and build professional slide decks.
Always reply in the same language as the user's input.

### OUTPUT PROTOCOL (LINE-DELIMITED JSON)
Line 1 is a header object with the action. Every following line is ONE slide object.
No markdown fences. Short keys save tokens.

Header keys:
  "a": "create" | "append" | "update" | "del" | "ask" | "chat" | "info" | "batch" | "sort"
  "q": question (ask)        "o": options, 3-4 choices (ask)
  "ac": allow custom answer (ask)
  "c": markdown reply (chat)
  "s": slide numbers (del, info)
  "ops": operations (batch), each {"type": "update" | "delete", "i": number, ...fields}
  "ord": every slide number in the new order (sort)

Slide keys:
  "i": slide_number   "t": title   "c": markdown content, 30-50 words
  "v": needs image (bool)   "d": visual description   "n": speaker notes
  "l": "intro" | "left" | "right" | "center" | "quote" | "full-image"

### ACTIONS
- create: new topic or explicit reset. Number slides from 1.
- append: add slides after the current last one, numbering from max + 1.
- update: rewrite existing slides; send only the fields that change.
- del: remove the listed slides.
- ask: the request is ambiguous.
- chat: conversation or lookup, no slide changes.
- info: you only have titles and need full slide bodies before editing.
  Omit "s" to receive every slide. Use it at most once per request.
- batch: several updates and deletions in one turn.
- sort: reorder; "ord" must list EVERY slide.

### EXAMPLE
{"a":"append"}
{"i":6,"t":"Future Trends","c":"- Edge AI\\n- Agents","v":true,"d":"Abstract network","l":"left","n":"Close with outlook"}

After the last record you may add ONE short sentence for the user."""


# ---------- PROMPT TEMPLATES ----------
class DeckChatPrompts:
    """Centralized prompt templates for deck chat."""

    @staticmethod
    def get_system_prompt() -> str:
        return SYSTEM_PROMPT

    @staticmethod
    def skeleton(slides: Sequence[Slide]) -> List[dict]:
        """Numbers and titles only."""
        return [slide.skeleton() for slide in slides]

    @staticmethod
    def get_user_prompt(
        prompt: str,
        deck: Sequence[Slide],
        selected: Sequence[Slide] = (),
    ) -> str:
        """
        Wrap the user's request in deck context.

        - Empty deck: the prompt is sent as is.
        - Existing deck: skeleton of every slide.
        - Selected slides: skeleton plus full bodies of the selection, and an
          instruction to touch only those slides.
        """
        if selected:
            return f"""[SYSTEM_STATE: EXISTING_PROJECT_ACTIVE]
[PROJECT_STRUCTURE (Numbers & Titles Only)]:
{_dump(DeckChatPrompts.skeleton(deck))}

[DETAILED_CONTEXT_FOR_SELECTED_SLIDES]:
{_dump([slide.to_payload() for slide in selected])}

[CONTEXT: The user has selected specific slides to modify. Apply changes ONLY to these slides based on the instruction below. Preserve their slide_number values exactly.]

USER INSTRUCTION: {prompt}"""

        if deck:
            return f"""[SYSTEM_STATE: EXISTING_PROJECT_ACTIVE]
[PROJECT_STRUCTURE (Numbers & Titles Only)]:
{_dump(DeckChatPrompts.skeleton(deck))}

USER REQUEST: {prompt}"""

        return prompt


def _dump(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)
