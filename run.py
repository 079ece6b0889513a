from pickem import create_app, db
from pickem.models import Group, GroupMember, Pick, ScheduledGame, Team

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "Group": Group,
        "GroupMember": GroupMember,
        "ScheduledGame": ScheduledGame,
        "Pick": Pick,
        "Team": Team,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
