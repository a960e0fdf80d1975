# Cache keys for common data types

from bountyexpo.shared.modules.bounty.ids import normalize_id


class CacheKeys:
    BOUNTIES_LIST = "bounties_list"
    CONVERSATIONS_LIST = "conversations_list"

    @staticmethod
    def bounty_detail(bounty_id):
        return f"bounty_{normalize_id(bounty_id)}"

    @staticmethod
    def conversation_messages(conversation_id):
        return f"conversation_{normalize_id(conversation_id)}_messages"

    @staticmethod
    def user_profile(user_id):
        return f"user_profile_{normalize_id(user_id)}"

    @staticmethod
    def my_bounties(user_id):
        return f"my_bounties_{normalize_id(user_id)}"

    @staticmethod
    def in_progress(user_id):
        return f"in_progress_{normalize_id(user_id)}"

    @staticmethod
    def my_requests(user_id):
        return f"my_requests_{normalize_id(user_id)}"

    @staticmethod
    def bounty_requests(bounty_id):
        return f"bounty_requests_{normalize_id(bounty_id)}"
