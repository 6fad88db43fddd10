"""
Heuristic confidence score for generated answers.

Not a probability: it rewards longer answers, answers grounded in
retrieved chunks and answers that use policy vocabulary, and penalises
answers that admit the documents did not cover the question.
"""
BASE_SCORE = 0.5
MIN_SCORE = 0.1
MAX_SCORE = 1.0

COVERAGE_TERMS = ('coverage', 'policy')
EXCLUSION_TERMS = ('exclusion', 'waiting period')
DISCLAIMER_PHRASES = (
    "i don't have enough information",
    'not available in the documents',
)


def score_confidence(answer: str, chunks_used: int) -> float:
    """
    Score an answer in [0.1, 1.0].

    Args:
        answer: Generated answer text
        chunks_used: Number of document chunks given to the model
    """
    score = BASE_SCORE
    answer = answer or ''
    text = answer.lower().replace('\u2019', "'")

    if len(answer) > 100:
        score += 0.1
    if len(answer) > 300:
        score += 0.1

    if chunks_used > 0:
        score += 0.2
    if chunks_used > 2:
        score += 0.1

    if any(term in text for term in COVERAGE_TERMS):
        score += 0.05
    if any(term in text for term in EXCLUSION_TERMS):
        score += 0.05

    if any(phrase in text for phrase in DISCLAIMER_PHRASES):
        score -= 0.2

    return round(min(max(score, MIN_SCORE), MAX_SCORE), 4)
