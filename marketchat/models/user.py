from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    username: str
    # store the user sells for; null for buyers
    store_id: Optional[int]
