def project_room(project_id: int) -> str:
    return f"project:{int(project_id)}"


def user_room(user_id: int) -> str:
    return f"user:{int(user_id)}"
