# services/question_bank.py - static ordered list of ethics / anti-corruption questions
from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class AnswerOption:
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class Question:
    prompt: str
    options: Tuple[AnswerOption, ...]

    def __post_init__(self):
        if not self.options:
            raise ValueError(f"question has no options: {self.prompt!r}")
        correct = sum(1 for o in self.options if o.is_correct)
        if correct != 1:
            raise ValueError(
                f"question must have exactly one correct option, found {correct}: {self.prompt!r}"
            )

    def is_correct(self, option_index: int) -> bool:
        """Raises IndexError for an option that does not exist."""
        if option_index < 0 or option_index >= len(self.options):
            raise IndexError(
                f"option {option_index} out of range for question with {len(self.options)} options"
            )
        return self.options[option_index].is_correct


def _q(prompt: str, correct: str, *wrong: str) -> Question:
    # Correct option is listed first here; display order mixes it in at a fixed position
    options = [AnswerOption(w) for w in wrong]
    options.insert(len(prompt) % (len(wrong) + 1), AnswerOption(correct, True))
    return Question(prompt, tuple(options))


QUESTIONS: List[Question] = [
    _q(
        "What is corruption?",
        "The abuse of entrusted power for private gain",
        "Any disagreement with a business partner",
        "A legal way to speed up administrative procedures",
        "A marketing expense",
    ),
    _q(
        "A customs officer asks for a small cash payment to release goods faster. What is this?",
        "A facilitation payment, which is prohibited",
        "A normal tip that can be paid freely",
        "An official fee, as long as it is small",
        "A sponsorship",
    ),
    _q(
        "A supplier offers you an expensive watch during a tender. What should you do?",
        "Politely refuse and inform your manager or the compliance officer",
        "Accept it if nobody sees it",
        "Accept it and select the supplier in return",
        "Ask for a cheaper gift instead",
    ),
    _q(
        "Which situation is a conflict of interest?",
        "Awarding a contract to a company owned by your brother",
        "Comparing three quotes before buying",
        "Attending a mandatory training",
        "Reporting an incident to your manager",
    ),
    _q(
        "What is the right reaction if you suspect a colleague of fraud?",
        "Report it through the whistleblowing channel",
        "Ignore it, it is not your business",
        "Investigate alone and confront the colleague publicly",
        "Ask the colleague to share the gains",
    ),
    _q(
        "Are you protected when you report a concern in good faith?",
        "Yes, retaliation against a good-faith whistleblower is prohibited",
        "No, you can be sanctioned for reporting",
        "Only if the concern is proven",
        "Only if you report anonymously",
    ),
    _q(
        "Which of these gifts is generally acceptable?",
        "A branded pen of symbolic value, declared according to the policy",
        "A paid holiday for your family",
        "A cash envelope at year end",
        "A new car",
    ),
    _q(
        "What must third parties (agents, intermediaries) undergo before working with us?",
        "An integrity due diligence",
        "Nothing, they are responsible for themselves",
        "A simple phone call",
        "Only a price negotiation",
    ),
    _q(
        "Who is responsible for preventing corruption in the company?",
        "Every employee, at every level",
        "Only the compliance department",
        "Only senior management",
        "Only the finance department",
    ),
    _q(
        "What can the consequences of corruption be for the company?",
        "Criminal penalties, fines, exclusion from public tenders and reputational damage",
        "No consequences if the contract is won",
        "Only a warning letter",
        "A tax advantage",
    ),
]
