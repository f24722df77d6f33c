class ChatRoomError(Exception):
    """채팅방 비즈니스 에러 기본 클래스"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConflictError(ChatRoomError):
    """이미 사용 중인 이름으로 입장할 때"""

    pass


class NotFoundError(ChatRoomError):
    """참가자 또는 메시지가 존재하지 않을 때"""

    pass


class UnauthorizedError(ChatRoomError):
    """작성자가 아닌 사용자가 메시지를 수정/삭제하려 할 때"""

    pass


class InvalidMessageError(ChatRoomError):
    """잘못된 형식의 입력이 코어까지 들어왔을 때"""

    pass


class StoreUnavailableError(ChatRoomError):
    """저장소 타임아웃 또는 일시적 장애"""

    def __init__(self, message: str = "저장소를 일시적으로 사용할 수 없습니다"):
        super().__init__(message)


class DuplicateDocumentError(Exception):
    """유니크 인덱스 위반"""

    def __init__(self, collection: str, message: str = "Duplicate document"):
        self.collection = collection
        self.message = message
        super().__init__(message)
