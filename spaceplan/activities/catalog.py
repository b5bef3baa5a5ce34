"""Static question catalog for the diagnosis conversation.

Two disjoint ordered sequences. REQUIRED_QUESTIONS[0] is the welcome message
(no options, not counted in progress); OPTIONAL_QUESTIONS[0] is the gate
question tagged ``continueOptional`` that the conversation workflow handles
itself instead of writing a field.
"""

from __future__ import annotations

from spaceplan.models.contracts import ChatOption, Phase, Question

CONTINUE_OPTIONAL = "continueOptional"
CUSTOM_VALUE = "custom"
# referenceText stored when only an image was attached
IMAGE_ONLY_VALUE = "[이미지 첨부]"


def _opts(*pairs: tuple[str, str | bool] | tuple[str, str | bool, str]) -> tuple[ChatOption, ...]:
    options = []
    for pair in pairs:
        label, value, *rest = pair
        options.append(ChatOption(label=label, value=value, description=rest[0] if rest else None))
    return tuple(options)


REQUIRED_QUESTIONS: tuple[Question, ...] = (
    Question(
        id="welcome",
        content=(
            "안녕하세요! 스페이스플래닝 AI 사전진단입니다.\n"
            "몇 가지 질문에 답해주시면 숙박업 창업 시나리오 3가지를 만들어 드릴게요."
        ),
    ),
    Question(
        id="project-status",
        content="현재 프로젝트는 어느 단계에 있나요?",
        input_type="card",
        field="projectStatus",
        options=_opts(
            ("매물 탐색 중", "searching", "아직 건물이나 부지를 찾고 있어요"),
            ("기획 단계", "planning", "건물은 정했고 사업을 구상 중이에요"),
            ("설계 단계", "design", "설계사무소와 도면을 그리고 있어요"),
            ("시공 단계", "construction", "공사를 앞두고 있거나 진행 중이에요"),
        ),
    ),
    Question(
        id="region",
        content="어느 지역에서 숙박업을 계획하고 계신가요?",
        input_type="chip",
        field="location.region",
        options=_opts(
            ("서울", "seoul"),
            ("경기/인천", "gyeonggi"),
            ("강원", "gangwon"),
            ("충청", "chungcheong"),
            ("전라", "jeolla"),
            ("경상", "gyeongsang"),
            ("제주", "jeju"),
            ("미정", "undecided"),
        ),
    ),
    Question(
        id="location-type",
        content="입지 유형은 어디에 가까운가요?",
        input_type="button",
        field="location.locationType",
        options=_opts(
            ("관광지", "tourist"),
            ("도심", "urban"),
            ("대학가", "university"),
            ("역세권", "station"),
            ("기타", "other"),
        ),
    ),
    Question(
        id="accommodation-type",
        content="어떤 형태의 숙박업을 생각하고 계신가요?",
        input_type="card",
        field="accommodationType",
        options=_opts(
            ("모텔", "motel", "도심형 무인·대실 중심 운영"),
            ("펜션·풀빌라", "pension", "가족·커플 단위 휴양 숙소"),
            ("게스트하우스", "guesthouse", "도미토리·공용 공간 중심"),
            ("공유숙박", "airbnb", "에어비앤비 등 플랫폼 운영"),
            ("소형호텔", "boutique", "부티크·비즈니스 호텔"),
            ("기타", "other"),
        ),
    ),
    Question(
        id="rooms",
        content="예상 객실 수는 몇 실인가요?",
        input_type="chip",
        field="scale.rooms",
        allow_text_input=True,
        options=_opts(
            ("10실 이하", "10"),
            ("10~20실", "10-20"),
            ("20~30실", "20-30"),
            ("30실 이상", "30+"),
            ("직접 입력", CUSTOM_VALUE),
        ),
    ),
    Question(
        id="area",
        content="건물 연면적은 어느 정도인가요?",
        input_type="chip",
        field="scale.area",
        allow_text_input=True,
        options=_opts(
            ("100평 미만", "under-100py"),
            ("100~300평", "100-300py"),
            ("300평 이상", "over-300py"),
            ("모름", "unknown"),
            ("직접 입력", CUSTOM_VALUE),
        ),
    ),
    Question(
        id="floors",
        content="건물은 몇 층인가요?",
        input_type="chip",
        field="scale.floors",
        allow_text_input=True,
        options=_opts(
            ("1~2층", "1-2"),
            ("3~5층", "3-5"),
            ("6층 이상", "6+"),
            ("직접 입력", CUSTOM_VALUE),
        ),
    ),
    Question(
        id="parking",
        content="주차는 몇 대까지 가능한가요?",
        input_type="button",
        field="scale.parking",
        options=_opts(
            ("주차 불가", "none"),
            ("1~5대", "1-5"),
            ("6~10대", "6-10"),
            ("10대 이상", "10+"),
        ),
    ),
    Question(
        id="budget",
        content="전체 예산은 어느 정도로 생각하고 계신가요?",
        input_type="card",
        field="budget",
        options=_opts(
            ("5천만원 미만", "under-50m", "소규모 리모델링"),
            ("5천만원~5억원", "50m-5b", "중소형 리모델링·신축 일부"),
            ("5억~15억원", "5b-15b", "중대형 리모델링·소형 신축"),
            ("15억 이상", "over-15b", "신축·대형 프로젝트"),
            ("미정", "unknown"),
        ),
    ),
    Question(
        id="building-purchase",
        content="예산에 건물 매입 비용이 포함되어 있나요?",
        input_type="button",
        field="includeBuildingPurchase",
        options=_opts(
            ("예, 포함입니다", True),
            ("아니오, 공사비만입니다", False),
        ),
    ),
)


OPTIONAL_QUESTIONS: tuple[Question, ...] = (
    Question(
        id="optional-intro",
        content=(
            "필수 항목 입력이 끝났어요!\n"
            "추가 정보를 알려주시면 더 정확한 시나리오를 만들 수 있어요. 계속하시겠어요?"
        ),
        input_type="button",
        field=CONTINUE_OPTIONAL,
        options=_opts(
            ("추가 정보 입력하기", "yes"),
            ("바로 리포트 받기", "no"),
        ),
    ),
    Question(
        id="target-customer",
        content="주요 타겟 고객은 누구인가요?",
        input_type="chip",
        field="targetCustomer",
        skippable=True,
        options=_opts(
            ("커플", "couple"),
            ("가족", "family"),
            ("장기 투숙객", "longstay"),
            ("단체", "group"),
            ("아직 모르겠어요", "unknown"),
        ),
    ),
    Question(
        id="concept",
        content="원하는 인테리어 컨셉이 있나요?",
        input_type="chip",
        field="concept",
        skippable=True,
        allow_text_input=True,
        options=_opts(
            ("미니멀", "minimal"),
            ("자연친화", "nature"),
            ("럭셔리", "luxury"),
            ("인스타 감성", "instagram"),
            ("키치·개성", "kitsch"),
            ("아직 모르겠어요", "unknown"),
            ("직접 입력", CUSTOM_VALUE),
        ),
    ),
    Question(
        id="reference",
        content="참고하고 싶은 레퍼런스가 있다면 설명이나 이미지로 알려주세요.",
        input_type="textWithImage",
        field="referenceText",
        skippable=True,
        allow_text_input=True,
        allow_image_upload=True,
    ),
    Question(
        id="interior-scope",
        content="인테리어 범위는 어느 정도인가요?",
        input_type="card",
        field="interiorScope",
        skippable=True,
        options=_opts(
            ("전체 리모델링", "full", "구조·설비 포함 전면 공사"),
            ("부분 리모델링", "partial", "객실·공용부 일부 공사"),
            ("가구·스타일링", "furnishing", "마감 유지, 가구와 소품 위주"),
            ("미정", "undecided"),
        ),
    ),
    Question(
        id="building-condition",
        content="현재 건물 상태는 어떤가요?",
        input_type="button",
        field="buildingCondition",
        skippable=True,
        options=_opts(
            ("신축", "new"),
            ("양호", "good"),
            ("노후", "old"),
            ("모름", "unknown"),
        ),
    ),
    Question(
        id="condition-detail",
        content="건물 상태에 대해 더 알려주실 내용이 있나요? (누수, 설비 노후 등)",
        input_type="text",
        field="conditionText",
        skippable=True,
        allow_text_input=True,
    ),
)


def questions_for(phase: Phase) -> tuple[Question, ...]:
    return OPTIONAL_QUESTIONS if phase == "optional" else REQUIRED_QUESTIONS


def get_question(phase: Phase, index: int) -> Question | None:
    """Look up a question by phase and index; None when out of range."""
    questions = questions_for(phase)
    if 0 <= index < len(questions):
        return questions[index]
    return None


def conversation_progress(phase: Phase, index: int) -> int:
    """Percent of required questions reached; the welcome entry is not counted."""
    if phase == "optional":
        return 100
    total = len(REQUIRED_QUESTIONS) - 1
    return round(min(max(index, 0), total) / total * 100)


def progress_label(phase: Phase, index: int) -> str:
    if phase == "optional":
        return "추가 정보 입력"
    total = len(REQUIRED_QUESTIONS) - 1
    return f"{max(1, min(index, total))}/{total} 필수 항목"
