"""VARK learning-style questionnaire taken by students after registering."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.auth.dependencies import require_roles
from portal.database import get_db
from portal.models.profile import LEARNING_STYLES, Profile
from portal.routes.auth_routes import UserResponse, get_home_route, serialize_user
from portal.routes.common import database_unavailable

router = APIRouter(tags=['onboarding'])

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

LEARNING_STATEMENTS = [
    (1, 'I prefer to learn through animations and videos that illustrate the concept clearly.', 'visual'),
    (2, "I prefer to learn by listening to someone's instruction and explanation rather than reading.", 'auditory'),
    (3, 'I prefer to learn when I can participate and be involved actively in the discussion.', 'kinesthetic'),
    (4, 'I prefer to learn through reading detailed discussions of the topic.', 'reading_writing'),
    (5, 'I prefer to watch video presentations with step-by-step explanations to visualize and understand the concept clearly.', 'visual'),
    (6, 'I prefer to learn using a recorded discussion as a learning material.', 'auditory'),
    (7, 'I prefer to learn through hands-on digital activities like virtual simulations.', 'kinesthetic'),
    (8, 'I prefer to take down notes and use them as learning material.', 'reading_writing'),
    (9, 'I prefer to use a diagram and concept maps in learning complex biology concepts.', 'visual'),
    (10, 'I prefer to use verbal and audio instructions to guide my learning about a certain concept.', 'auditory'),
    (11, 'I prefer to learn by doing online tasks that allow me to apply concepts in real-time.', 'kinesthetic'),
    (12, "I prefer to learn when I'm able to read on my own and explore complex topics in detail.", 'reading_writing'),
    (13, 'I prefer to learn using interactive charts that visually demonstrate biological processes.', 'visual'),
    (14, 'I prefer to learn biology topics through a question-and-answer discussion.', 'auditory'),
    (15, 'I prefer to learn through various activities that engage my senses and movement to reinforce concepts.', 'kinesthetic'),
    (16, 'I prefer to learn through reading and writing activities.', 'reading_writing'),
    (17, 'I prefer to use colored-contents and images materials in learning biological processes.', 'visual'),
    (18, 'I prefer to discuss or share my knowledge with others to deepen my understanding of the concepts.', 'auditory'),
    (19, 'I prefer to learn through exploring and manipulating various materials to understand the concept better.', 'kinesthetic'),
    (20, 'I prefer to learn and engage with the discussion through text-based explanations.', 'reading_writing'),
]
STATEMENT_CATEGORIES = {statement_id: category for statement_id, _, category in LEARNING_STATEMENTS}


class LearningStatementResponse(BaseModel):
    id: int
    statement: str
    category: str


class VARKAnswersRequest(BaseModel):
    ratings: dict[int, int]

    @field_validator('ratings')
    @classmethod
    def validate_ratings(cls, value: dict[int, int]) -> dict[int, int]:
        for statement_id, rating in value.items():
            if statement_id not in STATEMENT_CATEGORIES:
                raise ValueError(f'Unknown statement {statement_id}.')
            if not MIN_RATING <= rating <= MAX_RATING:
                raise ValueError(f'Ratings must be between {MIN_RATING} and {MAX_RATING}.')
        return value


class VARKResultResponse(BaseModel):
    success: bool
    message: str
    scores: dict[str, int]
    dominant_style: str
    user: UserResponse
    redirect_to: str


def score_learning_styles(ratings: dict[int, int]) -> dict[str, int]:
    scores = {style: 0 for style in LEARNING_STYLES}
    for statement_id, category in STATEMENT_CATEGORIES.items():
        scores[category] += ratings.get(statement_id, 0)
    return scores


def determine_dominant_style(scores: dict[str, int]) -> str:
    # Ties go to the later style in LEARNING_STYLES order.
    dominant = LEARNING_STYLES[0]
    for style in LEARNING_STYLES[1:]:
        if scores.get(style, 0) >= scores.get(dominant, 0):
            dominant = style
    return dominant


@router.get('/vark/statements', response_model=list[LearningStatementResponse])
def list_learning_statements():
    return [
        LearningStatementResponse(id=statement_id, statement=statement, category=category)
        for statement_id, statement, category in LEARNING_STATEMENTS
    ]


@router.post('/vark', response_model=VARKResultResponse)
def complete_vark_onboarding(
    data: VARKAnswersRequest,
    current_user: Profile = Depends(require_roles('student')),
    db: Session = Depends(get_db),
):
    scores = score_learning_styles(data.ratings)
    dominant_style = determine_dominant_style(scores)

    try:
        current_user.learning_style = dominant_style
        current_user.onboarding_completed = True
        db.commit()
        db.refresh(current_user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Student %s completed onboarding as %s', current_user.id, dominant_style)

    return VARKResultResponse(
        success=True,
        message='Your learning style has been saved.',
        scores=scores,
        dominant_style=dominant_style,
        user=serialize_user(current_user),
        redirect_to=get_home_route(current_user),
    )
